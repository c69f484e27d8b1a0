"""CreatorOnboarding aggregate: a creator's payment-account readiness.

A creator can sell only once their provider account accepts charges,
receives payouts and has its required details submitted.
"""

from datetime import UTC, datetime

from protean import atomic_change
from protean.fields import Boolean, DateTime, Identifier, String

from marketplace.domain import marketplace


@marketplace.event(part_of="CreatorOnboarding")
class StripeOnboardingCompleted:
    __version__ = 1

    creator_id = Identifier(required=True)
    stripe_account_id = String()
    completed_at = DateTime(required=True)


@marketplace.aggregate
class CreatorOnboarding:
    creator_id = Identifier(required=True)
    stripe_account_id = String(max_length=255)
    stripe_onboarding_complete = Boolean(default=False)
    completed_at = DateTime()
    created_at = DateTime()
    updated_at = DateTime()

    @classmethod
    def start(cls, creator_id, stripe_account_id=None):
        now = datetime.now(UTC)
        return cls(
            creator_id=creator_id,
            stripe_account_id=stripe_account_id,
            stripe_onboarding_complete=False,
            created_at=now,
            updated_at=now,
        )

    def complete_stripe_onboarding(self):
        """Mark the provider account ready. Returns False if it already was."""
        if self.stripe_onboarding_complete:
            return False

        now = datetime.now(UTC)
        with atomic_change(self):
            self.stripe_onboarding_complete = True
            self.completed_at = now
            self.updated_at = now

        self.raise_(
            StripeOnboardingCompleted(
                creator_id=str(self.creator_id),
                stripe_account_id=self.stripe_account_id,
                completed_at=now,
            )
        )
        return True


@marketplace.repository(part_of=CreatorOnboarding)
class CreatorOnboardingRepository:
    def find_by_stripe_account(self, stripe_account_id):
        found = self._dao.query.filter(stripe_account_id=stripe_account_id).all().items
        return found[0] if found else None
