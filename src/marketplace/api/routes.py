"""FastAPI routes for the Marketplace: orders, disputes, returns, webhooks, escrow."""

import json
from dataclasses import asdict
from datetime import datetime

from fastapi import APIRouter, Header, Request
from fastapi.responses import JSONResponse
from protean.utils.globals import current_domain

from marketplace.api.schemas import (
    CancelOrderRequest,
    CancelOrderResponse,
    CloseDisputeRequest,
    CreatorActionRequest,
    DisputeIdResponse,
    DisputeResponse,
    OpenDisputeRequest,
    OrderIdResponse,
    OrderItemResponse,
    OrderResponse,
    PlaceOrderRequest,
    RecordDeliveryRequest,
    RecordShipmentRequest,
    RefundResponse,
    RejectReturnRequest,
    ReleasableOrderResponse,
    RequestReturnRequest,
    ResolveDisputeRequest,
    ReturnIdResponse,
    ReturnResponse,
    ShipBackRequest,
    StatusResponse,
    WebhookAckResponse,
)
from marketplace.disputes.dispute import Dispute
from marketplace.disputes.review import CloseDispute, ResolveDispute, StartDisputeReview
from marketplace.escrow.scheduler import releasable_orders
from marketplace.order.cancellation import CancelOrder
from marketplace.order.checkout import PlaceOrder
from marketplace.order.fulfillment import OpenDispute, RecordDelivery, RecordShipment
from marketplace.order.order import Order
from marketplace.returns.decision import ApproveReturn, RejectReturn
from marketplace.returns.progress import MarkReturnReceived, MarkReturnShippedBack, RefundReturn
from marketplace.returns.request import RequestReturn
from marketplace.returns.return_request import ReturnRequest, days_remaining_in_window
from marketplace.webhook import WebhookReconciler

# ---------------------------------------------------------------------------
# Order Router
# ---------------------------------------------------------------------------
order_router = APIRouter(prefix="/orders", tags=["orders"])


@order_router.post("", status_code=201, response_model=OrderIdResponse)
async def place_order(body: PlaceOrderRequest) -> OrderIdResponse:
    command = PlaceOrder(
        customer_id=body.customer_id,
        creator_id=body.creator_id,
        items=json.dumps([item.model_dump() for item in body.items]),
        shipping_address=json.dumps(body.shipping_address.model_dump()),
        customer_name=body.customer_name,
        customer_email=body.customer_email,
        currency=body.currency,
        payment_method=body.payment_method,
        payment_intent_id=body.payment_intent_id,
    )
    result = current_domain.process(command, asynchronous=False)
    return OrderIdResponse(order_id=result)


@order_router.get("/{order_id}", response_model=OrderResponse)
async def get_order(order_id: str) -> OrderResponse:
    order = current_domain.repository_for(Order).get(order_id)
    return OrderResponse(
        order_id=str(order.id),
        order_number=order.order_number,
        customer_id=str(order.customer_id),
        creator_id=str(order.creator_id),
        status=order.status,
        total_amount=order.total_amount,
        currency=order.currency,
        items=[
            OrderItemResponse(
                product_id=str(item.product_id),
                title=item.title,
                quantity=item.quantity,
                unit_price=item.unit_price,
                subtotal=item.subtotal,
            )
            for item in order.items
        ],
        stripe_payment_intent_id=order.stripe_payment_intent_id,
        stripe_refund_id=order.stripe_refund_id,
        carrier=order.carrier,
        tracking_number=order.tracking_number,
        delivered_at=order.delivered_at,
        return_days_remaining=days_remaining_in_window(order),
    )


@order_router.post("/{order_id}/cancel", response_model=CancelOrderResponse)
async def cancel_order(order_id: str, body: CancelOrderRequest) -> CancelOrderResponse:
    command = CancelOrder(order_id=order_id, reason=body.reason, customer_id=body.customer_id)
    result = current_domain.process(command, asynchronous=False)
    return CancelOrderResponse(**result)


@order_router.put("/{order_id}/ship", response_model=StatusResponse)
async def record_shipment(order_id: str, body: RecordShipmentRequest) -> StatusResponse:
    command = RecordShipment(
        order_id=order_id,
        carrier=body.carrier,
        tracking_number=body.tracking_number,
        creator_id=body.creator_id,
    )
    current_domain.process(command, asynchronous=False)
    return StatusResponse(status="shipped")


@order_router.put("/{order_id}/deliver", response_model=StatusResponse)
async def record_delivery(order_id: str, body: RecordDeliveryRequest | None = None) -> StatusResponse:
    command = RecordDelivery(order_id=order_id, delivered_at=body.delivered_at if body else None)
    current_domain.process(command, asynchronous=False)
    return StatusResponse(status="delivered")


@order_router.post("/{order_id}/dispute", response_model=DisputeIdResponse)
async def open_dispute(order_id: str, body: OpenDisputeRequest | None = None) -> DisputeIdResponse:
    body = body or OpenDisputeRequest()
    command = OpenDispute(
        order_id=order_id,
        customer_id=body.customer_id,
        dispute_type=body.dispute_type,
        description=body.description,
    )
    dispute_id = current_domain.process(command, asynchronous=False)
    return DisputeIdResponse(dispute_id=dispute_id)


# ---------------------------------------------------------------------------
# Dispute Router
# ---------------------------------------------------------------------------
dispute_router = APIRouter(prefix="/disputes", tags=["disputes"])


@dispute_router.get("/{dispute_id}", response_model=DisputeResponse)
async def get_dispute(dispute_id: str) -> DisputeResponse:
    dispute = current_domain.repository_for(Dispute).get(dispute_id)
    return DisputeResponse(
        dispute_id=str(dispute.id),
        order_id=str(dispute.order_id),
        status=dispute.status,
        dispute_type=dispute.dispute_type,
        description=dispute.description,
        resolution=dispute.resolution,
        opened_at=dispute.opened_at,
    )


@dispute_router.put("/{dispute_id}/review", response_model=StatusResponse)
async def start_dispute_review(dispute_id: str) -> StatusResponse:
    current_domain.process(StartDisputeReview(dispute_id=dispute_id), asynchronous=False)
    return StatusResponse(status="under_review")


@dispute_router.put("/{dispute_id}/resolve", response_model=StatusResponse)
async def resolve_dispute(dispute_id: str, body: ResolveDisputeRequest) -> StatusResponse:
    current_domain.process(ResolveDispute(dispute_id=dispute_id, resolution=body.resolution), asynchronous=False)
    return StatusResponse(status="resolved")


@dispute_router.put("/{dispute_id}/close", response_model=StatusResponse)
async def close_dispute(dispute_id: str, body: CloseDisputeRequest) -> StatusResponse:
    current_domain.process(CloseDispute(dispute_id=dispute_id, reason=body.reason), asynchronous=False)
    return StatusResponse(status="closed")


# ---------------------------------------------------------------------------
# Return Router
# ---------------------------------------------------------------------------
return_router = APIRouter(prefix="/returns", tags=["returns"])


@return_router.post("", status_code=201, response_model=ReturnIdResponse)
async def request_return(body: RequestReturnRequest) -> ReturnIdResponse:
    command = RequestReturn(
        order_id=body.order_id,
        customer_id=body.customer_id,
        reason=body.reason,
        reason_details=body.reason_details,
        items=json.dumps([item.model_dump() for item in body.items]) if body.items else None,
    )
    result = current_domain.process(command, asynchronous=False)
    return ReturnIdResponse(return_id=result)


@return_router.get("/{return_id}", response_model=ReturnResponse)
async def get_return(return_id: str) -> ReturnResponse:
    request = current_domain.repository_for(ReturnRequest).get(return_id)
    return ReturnResponse(
        return_id=str(request.id),
        order_id=str(request.order_id),
        status=request.status,
        reason=request.reason,
        refund_amount=request.refund_amount,
        currency=request.currency,
        is_partial=request.is_partial,
        rejection_reason=request.rejection_reason,
        stripe_refund_id=request.stripe_refund_id,
    )


@return_router.put("/{return_id}/approve", response_model=StatusResponse)
async def approve_return(return_id: str, body: CreatorActionRequest) -> StatusResponse:
    current_domain.process(ApproveReturn(return_id=return_id, creator_id=body.creator_id), asynchronous=False)
    return StatusResponse(status="approved")


@return_router.put("/{return_id}/reject", response_model=StatusResponse)
async def reject_return(return_id: str, body: RejectReturnRequest) -> StatusResponse:
    command = RejectReturn(return_id=return_id, creator_id=body.creator_id, reason=body.reason)
    current_domain.process(command, asynchronous=False)
    return StatusResponse(status="rejected")


@return_router.put("/{return_id}/ship-back", response_model=StatusResponse)
async def ship_back(return_id: str, body: ShipBackRequest) -> StatusResponse:
    command = MarkReturnShippedBack(
        return_id=return_id,
        customer_id=body.customer_id,
        tracking_number=body.tracking_number,
        carrier=body.carrier,
    )
    current_domain.process(command, asynchronous=False)
    return StatusResponse(status="shipped_back")


@return_router.put("/{return_id}/receive", response_model=StatusResponse)
async def receive_return(return_id: str, body: CreatorActionRequest) -> StatusResponse:
    current_domain.process(MarkReturnReceived(return_id=return_id, creator_id=body.creator_id), asynchronous=False)
    return StatusResponse(status="received")


@return_router.post("/{return_id}/refund", response_model=RefundResponse)
async def refund_return(return_id: str, body: CreatorActionRequest) -> RefundResponse:
    refund_id = current_domain.process(RefundReturn(return_id=return_id, creator_id=body.creator_id), asynchronous=False)
    return RefundResponse(refund_id=refund_id)


# ---------------------------------------------------------------------------
# Webhook Router
# ---------------------------------------------------------------------------
webhook_router = APIRouter(prefix="/webhooks", tags=["webhooks"])


@webhook_router.post("/stripe", response_model=WebhookAckResponse)
async def stripe_webhook(request: Request, stripe_signature: str | None = Header(default=None)):
    """Receive a provider event. The raw body is needed for signature checks."""
    payload = await request.body()
    receipt = WebhookReconciler().handle(payload, stripe_signature)
    if not receipt.acknowledged:
        return JSONResponse(
            status_code=receipt.http_status,
            content={"success": False, "error": receipt.detail or receipt.outcome.value},
        )
    return WebhookAckResponse(outcome=receipt.outcome.value, event_id=receipt.event_id)


# ---------------------------------------------------------------------------
# Escrow Router
# ---------------------------------------------------------------------------
escrow_router = APIRouter(prefix="/escrow", tags=["escrow"])


@escrow_router.get("/releasable", response_model=list[ReleasableOrderResponse])
async def list_releasable(at: datetime | None = None) -> list[ReleasableOrderResponse]:
    """Orders whose funds the payout job may release at ``at`` (default now)."""
    return [ReleasableOrderResponse(**asdict(entry)) for entry in releasable_orders(at)]
