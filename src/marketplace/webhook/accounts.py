"""``account.updated``: creator payment-account readiness."""

from protean import handle
from protean.fields import Boolean, Identifier, String
from protean.utils.globals import current_domain

from marketplace.creators.onboarding import CreatorOnboarding
from marketplace.domain import logger, marketplace


@marketplace.command(part_of="CreatorOnboarding")
class SyncStripeAccount:
    stripe_event_id = String(required=True, max_length=255)
    stripe_account_id = String(required=True, max_length=255)
    creator_id = Identifier()
    charges_enabled = Boolean(default=False)
    payouts_enabled = Boolean(default=False)
    details_submitted = Boolean(default=False)


def command_from(envelope):
    account = envelope.payload
    return SyncStripeAccount(
        stripe_event_id=envelope.event_id,
        stripe_account_id=account.get("id"),
        creator_id=(account.get("metadata") or {}).get("creator_id"),
        charges_enabled=bool(account.get("charges_enabled")),
        payouts_enabled=bool(account.get("payouts_enabled")),
        details_submitted=bool(account.get("details_submitted")),
    )


@marketplace.command_handler(part_of=CreatorOnboarding)
class StripeAccountHandler:
    @handle(SyncStripeAccount)
    def sync_account(self, command):
        if not (command.charges_enabled and command.payouts_enabled and command.details_submitted):
            logger.info(
                "stripe_account_not_ready",
                stripe_account_id=command.stripe_account_id,
                charges_enabled=command.charges_enabled,
                payouts_enabled=command.payouts_enabled,
                details_submitted=command.details_submitted,
            )
            return False

        repo = current_domain.repository_for(CreatorOnboarding)
        onboarding = repo.find_by_stripe_account(command.stripe_account_id)
        if onboarding is None:
            logger.warning(
                "onboarding_record_missing",
                stripe_account_id=command.stripe_account_id,
                creator_id=command.creator_id,
            )
            return False

        if not onboarding.complete_stripe_onboarding():
            return False

        repo.add(onboarding)
        logger.info(
            "stripe_onboarding_completed",
            creator_id=str(onboarding.creator_id),
            stripe_account_id=command.stripe_account_id,
        )
        return True
