"""BDD tests for return requests and their workflow."""

from marketplace.returns.return_request import ReturnRequest
from marketplace.shared.errors import ReturnWindowExpired
from protean.exceptions import ValidationError
from pytest_bdd import given, parsers, scenarios, then, when

scenarios("features/return_requests.feature")


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given("a requested return", target_fixture="return_request")
def requested_return(order):
    request = ReturnRequest.open(order, reason="Defective")
    request._events.clear()
    return request


# ---------------------------------------------------------------------------
# When steps
# ---------------------------------------------------------------------------
@when(parsers.cfparse('the customer requests a return for "{reason}"'), target_fixture="return_request")
def request_full_return(order, reason, error):
    try:
        return ReturnRequest.open(order, reason=reason)
    except ValidationError as exc:
        error["exc"] = exc


@when(
    parsers.cfparse('the customer returns {quantity:d} of "{product_id}" for "{reason}"'),
    target_fixture="return_request",
)
def request_partial_return(order, quantity, product_id, reason, error):
    try:
        return ReturnRequest.open(order, reason=reason, items=[{"product_id": product_id, "quantity": quantity}])
    except ValidationError as exc:
        error["exc"] = exc


@when("the creator approves the return")
def approve(return_request, error):
    try:
        return_request.approve()
    except ValidationError as exc:
        error["exc"] = exc


@when(parsers.cfparse('the creator rejects the return with reason "{reason}"'))
def reject(return_request, reason, error):
    try:
        return_request.reject(reason)
    except ValidationError as exc:
        error["exc"] = exc


@when(parsers.cfparse('the customer ships the return back with tracking "{tracking_number}"'))
def ship_back(return_request, tracking_number, error):
    try:
        return_request.mark_shipped_back(tracking_number=tracking_number, carrier="Mondial Relay")
    except ValidationError as exc:
        error["exc"] = exc


@when("the creator receives the return")
def receive(return_request, error):
    try:
        return_request.mark_received()
    except ValidationError as exc:
        error["exc"] = exc


@when(parsers.cfparse('the return is refunded with "{reference}"'))
def refund(return_request, reference, error):
    try:
        return_request.refund(reference)
    except ValidationError as exc:
        error["exc"] = exc


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse('the return status is "{status}"'))
def return_status_is(return_request, status):
    assert return_request.status == status


@then(parsers.cfparse("the refund amount is {amount:d}"))
def refund_amount_is(return_request, amount):
    assert return_request.refund_amount == amount


@then("the return is partial")
def return_is_partial(return_request):
    assert return_request.is_partial


@then(parsers.cfparse('the rejection reason is "{reason}"'))
def rejection_reason_is(return_request, reason):
    assert return_request.rejection_reason == reason


@then(parsers.cfparse("the return raised a {event_type} event"))
def return_raised(return_request, event_type, assert_raised):
    assert_raised(return_request, event_type)


@then("the action fails because the return window closed")
def window_closed(error):
    assert isinstance(error["exc"], ReturnWindowExpired)
