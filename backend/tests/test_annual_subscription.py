"""Tests for price classification and prorated annual subscriptions."""

from datetime import UTC, datetime

import pytest

from app.core.errors import ErrorKind
from app.models.account import SubscriptionStatus
from app.repositories.account_repository import AccountRepository
from app.schemas.account import AccountCreate
from app.schemas.provider import PriceFacts, ProrationBehavior
from app.services.annual_subscription import (
    AnnualSubscriptionService,
    BillingPeriod,
    classify_price,
)
from tests.fakes import FakePaymentProvider

START = datetime(2025, 1, 10, tzinfo=UTC)
PERIOD_END = datetime(2025, 5, 31, tzinfo=UTC)


def _price(interval=None, count=None, metadata=None):  # type: ignore[no-untyped-def]
    return PriceFacts(
        id="price_x",
        amount=1000,
        recurring_interval=interval,
        recurring_interval_count=count,
        metadata=metadata or {},
    )


class TestClassifyPrice:
    @pytest.mark.parametrize(
        "interval,count,expected",
        [
            ("month", 1, BillingPeriod.MONTHLY),
            ("month", 12, BillingPeriod.ANNUAL),
            ("month", 3, BillingPeriod.OTHER),
            ("year", 1, BillingPeriod.ANNUAL),
            ("week", 1, BillingPeriod.WEEKLY),
            ("day", 1, BillingPeriod.DAILY),
            (None, None, BillingPeriod.OTHER),
        ],
    )
    def test_by_interval(self, interval, count, expected):
        assert classify_price(_price(interval, count)) == expected

    def test_metadata_flag_marks_annual(self):
        assert classify_price(_price("month", 1, {"is_annual": "True"})) == BillingPeriod.ANNUAL

    def test_false_metadata_flag_uses_interval(self):
        assert classify_price(_price("month", 1, {"is_annual": "false"})) == BillingPeriod.MONTHLY


@pytest.fixture
def provider():
    provider = FakePaymentProvider()
    provider.prices["price_annual"] = PriceFacts(
        id="price_annual", amount=120000, recurring_interval="year", recurring_interval_count=1
    )
    return provider


@pytest.fixture
def account(db_session):
    return AccountRepository(db_session).create(
        AccountCreate(email="owner@example.com", provider_customer_id="cus_1", plan="FreeTrial")
    )


class TestCreateAnnualSubscription:
    def test_backdates_and_anchors_subscription(self, db_session, provider, account):
        service = AnnualSubscriptionService(db_session, provider)

        result = service.create_annual_subscription(
            "owner@example.com", "price_annual", "pm_1", PERIOD_END, start_date=START
        )

        assert result.ok
        annual = result.value
        assert annual.billable_months == 5
        assert annual.extra_days == 21
        assert annual.backdate_start == datetime(2024, 6, 10, tzinfo=UTC)
        assert annual.billing_anchor == datetime(2025, 6, 10, tzinfo=UTC)
        assert annual.days_remaining == 142
        assert annual.prorated_amount == 46684

        _, customer_id, price_id, payment_method_id, options = provider.calls[-1]
        assert (customer_id, price_id, payment_method_id) == ("cus_1", "price_annual", "pm_1")
        assert options.backdate_start_date == annual.backdate_start
        assert options.billing_cycle_anchor == annual.billing_anchor
        assert options.proration_behavior == ProrationBehavior.CREATE_PRORATIONS

        assert account.provider_subscription_id == annual.subscription.id
        # Incomplete until the first invoice is paid
        assert account.subscription_status == SubscriptionStatus.INCOMPLETE.value
        assert account.subscription_end_date == PERIOD_END

    def test_rejects_non_annual_price(self, db_session, provider, account):
        service = AnnualSubscriptionService(db_session, provider)

        result = service.create_annual_subscription(
            "owner@example.com", "price_basic_placeholder", "pm_1", PERIOD_END, start_date=START
        )

        assert result.error.kind == ErrorKind.VALIDATION
        assert provider.calls == []

    def test_period_end_must_be_after_start(self, db_session, provider, account):
        service = AnnualSubscriptionService(db_session, provider)

        result = service.create_annual_subscription(
            "owner@example.com", "price_annual", "pm_1", START, start_date=PERIOD_END
        )

        assert result.error.kind == ErrorKind.VALIDATION

    def test_naive_past_period_end_without_start_is_rejected(self, db_session, provider, account):
        service = AnnualSubscriptionService(db_session, provider)

        result = service.create_annual_subscription(
            "owner@example.com", "price_annual", "pm_1", datetime(2020, 5, 31)
        )

        assert result.error.kind == ErrorKind.VALIDATION
        assert provider.calls == []

    def test_naive_dates_are_taken_as_utc(self, db_session, provider, account):
        service = AnnualSubscriptionService(db_session, provider)

        annual = service.create_annual_subscription(
            "owner@example.com",
            "price_annual",
            "pm_1",
            PERIOD_END.replace(tzinfo=None),
            start_date=START.replace(tzinfo=None),
        ).value

        assert annual.billable_months == 5
        assert annual.billing_anchor == datetime(2025, 6, 10, tzinfo=UTC)
        assert annual.period_end == PERIOD_END

    def test_unknown_account(self, db_session, provider):
        service = AnnualSubscriptionService(db_session, provider)

        result = service.create_annual_subscription(
            "nobody@example.com", "price_annual", "pm_1", PERIOD_END, start_date=START
        )

        assert result.error.kind == ErrorKind.NOT_FOUND

    def test_provider_failure(self, db_session, provider, account):
        provider.fail_on.add("create_subscription")
        service = AnnualSubscriptionService(db_session, provider)

        result = service.create_annual_subscription(
            "owner@example.com", "price_annual", "pm_1", PERIOD_END, start_date=START
        )

        assert result.error.kind == ErrorKind.PROVIDER
        assert account.provider_subscription_id is None
