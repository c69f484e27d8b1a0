"""Reconciliation of account, invoice and subscription events."""

import json

import pytest
from marketplace.billing.plans import Plan
from marketplace.billing.subscription import Subscription, SubscriptionStatus
from marketplace.config import get_settings
from marketplace.creators.onboarding import CreatorOnboarding
from marketplace.gateway import FakeGateway
from marketplace.ledger.transaction import PlatformTransaction, TransactionType
from marketplace.webhook import WebhookOutcome, WebhookReconciler
from protean import current_domain


def _deliver(event_id, event_type, obj):
    body = json.dumps({"id": event_id, "type": event_type, "created": 1772366400, "data": {"object": obj}})
    return WebhookReconciler().handle(body.encode(), FakeGateway.VALID_SIGNATURE)


def _onboarding():
    onboarding = CreatorOnboarding.start(creator_id="creator-001", stripe_account_id="acct_001")
    current_domain.repository_for(CreatorOnboarding).add(onboarding)
    return str(onboarding.id)


def _subscription(plan=Plan.ESSENTIEL.value):
    subscription = Subscription.start(
        creator_id="creator-001",
        plan=plan,
        stripe_subscription_id="sub_001",
        stripe_customer_id="cus_001",
        stripe_price_id="price_essentiel_m",
    )
    current_domain.repository_for(Subscription).add(subscription)
    return str(subscription.id)


def _account(**flags):
    account = {"id": "acct_001", "charges_enabled": True, "payouts_enabled": True, "details_submitted": True}
    account.update(flags)
    return account


class TestAccountUpdated:
    def test_ready_account_completes_onboarding(self):
        onboarding_id = _onboarding()
        receipt = _deliver("evt_a1", "account.updated", _account())

        assert receipt.outcome == WebhookOutcome.PROCESSED
        onboarding = current_domain.repository_for(CreatorOnboarding).get(onboarding_id)
        assert onboarding.stripe_onboarding_complete is True

    @pytest.mark.parametrize("flag", ["charges_enabled", "payouts_enabled", "details_submitted"])
    def test_every_capability_is_required(self, flag):
        onboarding_id = _onboarding()
        _deliver("evt_a1", "account.updated", _account(**{flag: False}))

        onboarding = current_domain.repository_for(CreatorOnboarding).get(onboarding_id)
        assert onboarding.stripe_onboarding_complete is False

    def test_unknown_account_is_noop(self):
        receipt = _deliver("evt_a1", "account.updated", _account(id="acct_unknown"))
        assert receipt.outcome == WebhookOutcome.PROCESSED


class TestInvoicePaid:
    def test_records_subscription_fee(self):
        subscription_id = _subscription()
        receipt = _deliver(
            "evt_inv_1",
            "invoice.paid",
            {"id": "in_001", "subscription": "sub_001", "amount_paid": 2900, "currency": "eur"},
        )

        assert receipt.outcome == WebhookOutcome.PROCESSED
        entry = current_domain.repository_for(PlatformTransaction).get("evt_inv_1")
        assert entry.type == TransactionType.SUBSCRIPTION.value
        assert entry.amount.amount == 2900
        assert entry.amount.currency == "EUR"
        assert entry.subscription_id == subscription_id

    def test_nested_subscription_reference(self):
        _subscription()
        invoice = {
            "id": "in_002",
            "parent": {"subscription_details": {"subscription": "sub_001"}},
            "amount_paid": 7900,
            "currency": "eur",
        }
        _deliver("evt_inv_2", "invoice.paid", invoice)

        assert current_domain.repository_for(PlatformTransaction).get("evt_inv_2").amount.amount == 7900

    def test_duplicate_invoice_recorded_once(self):
        _subscription()
        invoice = {"id": "in_001", "subscription": "sub_001", "amount_paid": 2900, "currency": "eur"}
        _deliver("evt_inv_1", "invoice.paid", invoice)
        _deliver("evt_inv_1", "invoice.paid", invoice)

        entries = current_domain.repository_for(PlatformTransaction).captured_of_type(TransactionType.SUBSCRIPTION)
        assert len(entries) == 1

    def test_unknown_subscription_is_noop(self):
        receipt = _deliver(
            "evt_inv_3",
            "invoice.paid",
            {"id": "in_003", "subscription": "sub_unknown", "amount_paid": 2900, "currency": "eur"},
        )

        assert receipt.outcome == WebhookOutcome.PROCESSED
        assert current_domain.repository_for(PlatformTransaction).captured_of_type(TransactionType.SUBSCRIPTION) == []


class TestSubscriptionEvents:
    @pytest.fixture()
    def studio_price(self, monkeypatch):
        monkeypatch.setenv("STRIPE_PRICE_STUDIO", "price_studio_m")
        get_settings.cache_clear()
        yield
        get_settings.cache_clear()

    def test_status_synced(self):
        subscription_id = _subscription()
        _deliver("evt_s1", "customer.subscription.updated", {"id": "sub_001", "status": "past_due"})

        subscription = current_domain.repository_for(Subscription).get(subscription_id)
        assert subscription.status == SubscriptionStatus.PAST_DUE.value

    def test_plan_change_follows_price(self, studio_price):
        subscription_id = _subscription()
        _deliver(
            "evt_s2",
            "customer.subscription.updated",
            {
                "id": "sub_001",
                "status": "active",
                "items": {"data": [{"price": {"id": "price_studio_m"}, "current_period_end": 1775044800}]},
            },
        )

        subscription = current_domain.repository_for(Subscription).get(subscription_id)
        assert subscription.plan == Plan.STUDIO.value
        assert subscription.commission_rate == 0.04
        assert subscription.current_period_end is not None

    def test_unknown_status_keeps_current(self):
        subscription_id = _subscription()
        _deliver("evt_s3", "customer.subscription.updated", {"id": "sub_001", "status": "mystery"})

        subscription = current_domain.repository_for(Subscription).get(subscription_id)
        assert subscription.status == SubscriptionStatus.ACTIVE.value

    def test_deleted_cancels(self):
        subscription_id = _subscription()
        receipt = _deliver("evt_s4", "customer.subscription.deleted", {"id": "sub_001", "status": "canceled"})

        assert receipt.outcome == WebhookOutcome.PROCESSED
        subscription = current_domain.repository_for(Subscription).get(subscription_id)
        assert subscription.status == SubscriptionStatus.CANCELED.value
        assert subscription.cancelled_at is not None
