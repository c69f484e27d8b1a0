"""Creator decisions on a pending return: approve or reject."""

from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from marketplace.domain import marketplace
from marketplace.returns.return_request import ReturnRequest


@marketplace.command(part_of="ReturnRequest")
class ApproveReturn:
    return_id = Identifier(required=True)
    creator_id = Identifier(required=True)


@marketplace.command(part_of="ReturnRequest")
class RejectReturn:
    return_id = Identifier(required=True)
    creator_id = Identifier(required=True)
    reason = String(required=True, max_length=500)


def load_for_creator(return_id, creator_id):
    request = current_domain.repository_for(ReturnRequest).get(return_id)
    if str(request.creator_id) != str(creator_id):
        raise ValidationError({"creator_id": ["Return does not belong to this creator"]})
    return request


@marketplace.command_handler(part_of=ReturnRequest)
class ReturnDecisionHandler:
    @handle(ApproveReturn)
    def approve(self, command):
        request = load_for_creator(command.return_id, command.creator_id)
        request.approve()
        current_domain.repository_for(ReturnRequest).add(request)

    @handle(RejectReturn)
    def reject(self, command):
        request = load_for_creator(command.return_id, command.creator_id)
        request.reject(command.reason)
        current_domain.repository_for(ReturnRequest).add(request)
