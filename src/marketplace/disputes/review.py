"""Platform review of a dispute: take it under review, resolve or close it."""

from protean import handle
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from marketplace.disputes.dispute import Dispute
from marketplace.domain import logger, marketplace


@marketplace.command(part_of="Dispute")
class StartDisputeReview:
    dispute_id = Identifier(required=True)


@marketplace.command(part_of="Dispute")
class ResolveDispute:
    dispute_id = Identifier(required=True)
    resolution = String(required=True, max_length=1000)


@marketplace.command(part_of="Dispute")
class CloseDispute:
    dispute_id = Identifier(required=True)
    reason = String(required=True, max_length=1000)


@marketplace.command_handler(part_of=Dispute)
class DisputeReviewHandler:
    @handle(StartDisputeReview)
    def start_review(self, command):
        repo = current_domain.repository_for(Dispute)
        dispute = repo.get(command.dispute_id)
        dispute.start_review()
        repo.add(dispute)

    @handle(ResolveDispute)
    def resolve(self, command):
        repo = current_domain.repository_for(Dispute)
        dispute = repo.get(command.dispute_id)
        dispute.resolve(command.resolution)
        repo.add(dispute)
        logger.info("dispute_resolved", dispute_id=str(dispute.id), order_id=str(dispute.order_id))

    @handle(CloseDispute)
    def close(self, command):
        repo = current_domain.repository_for(Dispute)
        dispute = repo.get(command.dispute_id)
        dispute.close(command.reason)
        repo.add(dispute)
        logger.info("dispute_closed", dispute_id=str(dispute.id), order_id=str(dispute.order_id))
