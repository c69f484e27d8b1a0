from marketplace.creators.onboarding import CreatorOnboarding, StripeOnboardingCompleted


def _make_onboarding():
    onboarding = CreatorOnboarding.start(creator_id="creator-001", stripe_account_id="acct_001")
    onboarding._events.clear()
    return onboarding


class TestCreatorOnboarding:
    def test_starts_incomplete(self):
        onboarding = _make_onboarding()
        assert onboarding.stripe_onboarding_complete is False
        assert onboarding.completed_at is None

    def test_complete(self):
        onboarding = _make_onboarding()
        assert onboarding.complete_stripe_onboarding() is True
        assert onboarding.stripe_onboarding_complete is True
        assert onboarding.completed_at is not None
        assert isinstance(onboarding._events[-1], StripeOnboardingCompleted)

    def test_complete_twice_is_noop(self):
        onboarding = _make_onboarding()
        onboarding.complete_stripe_onboarding()
        onboarding._events.clear()
        assert onboarding.complete_stripe_onboarding() is False
        assert onboarding._events == []
