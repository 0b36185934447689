"""Tests for AccountService registration and subscription management."""

from datetime import UTC, datetime, timedelta

import pytest

from app.core.errors import ErrorKind
from app.models.account import SubscriptionStatus
from app.repositories.account_repository import AccountRepository
from app.schemas.account import AccountCreate
from app.schemas.provider import ProviderSubscriptionStatus
from app.services.account_service import AccountService
from tests.conftest import BASIC_PRICE_ID, PREMIUM_PRICE_ID
from tests.fakes import PERIOD_END, FakePaymentProvider


@pytest.fixture
def provider():
    return FakePaymentProvider()


@pytest.fixture
def service(db_session, provider):
    return AccountService(db_session, provider)


def _create_account(db_session, **overrides):  # type: ignore[no-untyped-def]
    values = {"email": "owner@example.com", "provider_customer_id": "cus_1", "plan": "Basic"}
    values.update(overrides)
    return AccountRepository(db_session).create(AccountCreate(**values))


class TestRegisterAccount:
    def test_new_account_starts_free_trial(self, service, provider):
        before = datetime.now(UTC)

        account = service.register_account("new@example.com").value

        assert account.provider_customer_id == "cus_new_1"
        assert account.plan == "FreeTrial"
        assert account.subscription_status == SubscriptionStatus.TRIAL.value
        assert account.has_premium_features is True
        assert account.provider_subscription_id is None
        assert account.usage_count == 0
        trial_length = account.subscription_end_date - before
        assert timedelta(days=13, hours=23) < trial_length <= timedelta(days=14, minutes=1)

    def test_existing_customer_is_returned_unchanged(self, service, provider, db_session):
        existing = _create_account(db_session)

        account = service.register_account("owner@example.com").value

        assert account.id == existing.id
        assert provider.calls == []

    def test_existing_account_without_customer_gets_one(self, service, db_session):
        _create_account(db_session, provider_customer_id=None, plan="Premium")

        account = service.register_account("owner@example.com").value

        assert account.provider_customer_id == "cus_new_1"
        assert account.plan == "Premium"

    def test_blank_email_is_rejected(self, service):
        assert service.register_account("  ").error.kind == ErrorKind.VALIDATION

    def test_provider_failure(self, service, provider, db_session):
        provider.fail_on.add("create_customer")

        result = service.register_account("new@example.com")

        assert result.error.kind == ErrorKind.PROVIDER
        assert AccountRepository(db_session).get_by_email("new@example.com") is None


class TestCreateSubscription:
    def test_records_reference_and_plan(self, service, db_session):
        account = _create_account(db_session, plan="FreeTrial")

        subscription = service.create_subscription(
            "owner@example.com", PREMIUM_PRICE_ID, "pm_1"
        ).value

        assert account.provider_subscription_id == subscription.id
        assert account.plan == "Premium"
        # Status follows from later events
        assert account.subscription_status == SubscriptionStatus.TRIAL.value

    def test_unknown_account(self, service):
        result = service.create_subscription("nobody@example.com", BASIC_PRICE_ID, "pm_1")
        assert result.error.kind == ErrorKind.NOT_FOUND

    def test_account_without_customer(self, service, db_session):
        _create_account(db_session, provider_customer_id=None)

        result = service.create_subscription("owner@example.com", BASIC_PRICE_ID, "pm_1")

        assert result.error.kind == ErrorKind.VALIDATION

    def test_payment_method_required(self, service, db_session):
        _create_account(db_session)

        result = service.create_subscription("owner@example.com", BASIC_PRICE_ID, "")

        assert result.error.kind == ErrorKind.VALIDATION


class TestCancelSubscription:
    def test_cancel_at_period_end_is_pending_cancel(self, service, provider, db_session):
        account = _create_account(db_session)
        AccountRepository(db_session).update_subscription_ref(account, "sub_1")
        provider.add_subscription()

        subscription = service.cancel_subscription("sub_1", at_period_end=True).value

        assert subscription.cancel_at_period_end is True
        assert account.subscription_status == SubscriptionStatus.PENDING_CANCEL.value
        assert account.has_premium_features is True
        assert account.subscription_end_date == PERIOD_END

    def test_immediate_cancel(self, service, provider, db_session):
        account = _create_account(db_session)
        AccountRepository(db_session).update_subscription_ref(account, "sub_1")
        provider.add_subscription()

        service.cancel_subscription("sub_1")

        assert account.subscription_status == SubscriptionStatus.CANCELED.value
        assert account.has_premium_features is False
        assert account.subscription_end_date == datetime(2025, 6, 15, tzinfo=UTC)

    def test_empty_reference(self, service):
        assert service.cancel_subscription("").error.kind == ErrorKind.VALIDATION


class TestGetSubscriptionDetails:
    def test_without_subscription(self, service, db_session):
        _create_account(db_session, plan="FreeTrial")

        details = service.get_subscription_details("owner@example.com").value

        assert details.plan == "FreeTrial"
        assert details.monthly_usage_limit == 200
        assert details.provider_status is None
        assert details.available_plans == []

    def test_with_subscription(self, service, provider, db_session):
        account = _create_account(db_session)
        AccountRepository(db_session).update_subscription_ref(account, "sub_1")
        provider.add_subscription(status=ProviderSubscriptionStatus.TRIALING)

        details = service.get_subscription_details("owner@example.com").value

        assert details.plan == "Basic"
        assert details.current_price_id == BASIC_PRICE_ID
        assert details.monthly_usage_limit == 1000
        assert details.provider_status == "trialing"
        assert details.current_period_end == PERIOD_END
        assert [plan.name for plan in details.available_plans] == ["Premium"]

    def test_unknown_account(self, service):
        assert (
            service.get_subscription_details("nobody@example.com").error.kind
            == ErrorKind.NOT_FOUND
        )

    def test_subscription_missing_at_provider(self, service, provider, db_session):
        account = _create_account(db_session)
        AccountRepository(db_session).update_subscription_ref(account, "sub_missing")

        result = service.get_subscription_details("owner@example.com")

        assert result.error.kind == ErrorKind.NOT_FOUND
        assert result.error.code == "resource_missing"

    def test_provider_failure(self, service, provider, db_session):
        account = _create_account(db_session)
        AccountRepository(db_session).update_subscription_ref(account, "sub_1")
        provider.fail_on.add("get_subscription")

        result = service.get_subscription_details("owner@example.com")

        assert result.error.kind == ErrorKind.PROVIDER
