"""Tests for account and plan repositories."""

from datetime import UTC, datetime
from unittest.mock import patch

import pytest
from sqlalchemy.exc import SQLAlchemyError

from app.models.account import SubscriptionStatus
from app.repositories.account_repository import AccountRepository
from app.repositories.plan_repository import DEFAULT_PLANS, PlanRepository
from app.schemas.account import AccountCreate, AccountResponse, AccountState
from app.schemas.plan import PlanCreate, PlanResponse
from tests.conftest import PREMIUM_PRICE_ID


@pytest.fixture
def account(db_session):
    return AccountRepository(db_session).create(
        AccountCreate(email="owner@example.com", provider_customer_id="cus_1", plan="Basic")
    )


class TestPlanRepository:
    def test_defaults_are_seeded(self, db_session):
        names = [plan.name for plan in PlanRepository(db_session).get_all()]
        assert names == ["Basic", "FreeTrial", "Premium"]

    def test_seed_is_idempotent(self, db_session):
        assert PlanRepository(db_session).seed_defaults() == []
        assert len(PlanRepository(db_session).get_all()) == len(DEFAULT_PLANS)

    def test_lookup_by_price_and_name(self, db_session):
        repo = PlanRepository(db_session)
        assert repo.get_by_price_id(PREMIUM_PRICE_ID).name == "Premium"
        assert repo.get_by_name("FreeTrial").monthly_usage_limit == 200
        assert repo.get_by_price_id("price_missing") is None

    def test_purchasable_excludes_unpriced_and_current(self, db_session):
        repo = PlanRepository(db_session)
        repo.create(PlanCreate(name="Team", monthly_usage_limit=50000, provider_price_id="price_team"))

        names = [plan.name for plan in repo.get_purchasable(exclude_price_id=PREMIUM_PRICE_ID)]

        assert names == ["Basic", "Team"]


class TestAccountRepository:
    def test_lookups(self, db_session, account):
        repo = AccountRepository(db_session)
        repo.update_subscription_ref(account, "sub_1")

        assert repo.get_by_id(account.id) is account
        assert repo.get_by_email("owner@example.com") is account
        assert repo.get_by_customer_id("cus_1") is account
        assert repo.get_by_subscription_id("sub_1") is account
        assert repo.get_by_customer_id("cus_other") is None

    def test_save_state_writes_all_fields(self, db_session, account):
        repo = AccountRepository(db_session)
        repo.increment_usage(account, 4)
        end = datetime(2025, 9, 1, tzinfo=UTC)

        repo.save_state(
            account,
            AccountState(
                subscription_status=SubscriptionStatus.ACTIVE,
                has_premium_features=True,
                subscription_end_date=end,
                plan="Premium",
                provider_subscription_id="sub_9",
                reset_usage=True,
            ),
        )

        assert account.subscription_status == "Active"
        assert account.has_premium_features is True
        assert account.subscription_end_date == end
        assert account.plan == "Premium"
        assert account.provider_subscription_id == "sub_9"
        assert account.usage_count == 0

    def test_save_state_keeps_plan_and_usage_when_not_given(self, db_session, account):
        repo = AccountRepository(db_session)
        repo.increment_usage(account, 2)

        repo.save_state(
            account,
            AccountState(subscription_status=SubscriptionStatus.PAST_DUE, has_premium_features=False),
        )

        assert account.plan == "Basic"
        assert account.usage_count == 2
        assert account.subscription_end_date is None

    def test_save_state_rolls_back_on_error(self, db_session, account):
        repo = AccountRepository(db_session)

        with (
            patch.object(db_session, "commit", side_effect=SQLAlchemyError("disk full")),
            pytest.raises(SQLAlchemyError),
        ):
            repo.save_state(
                account,
                AccountState(
                    subscription_status=SubscriptionStatus.CANCELED, has_premium_features=False
                ),
            )

        db_session.refresh(account)
        assert account.subscription_status == SubscriptionStatus.TRIAL.value


class TestResponseSchemas:
    def test_account_response_from_model(self, account):
        response = AccountResponse.model_validate(account)

        assert response.email == "owner@example.com"
        assert response.subscription_status == SubscriptionStatus.TRIAL
        assert response.usage_count == 0

    def test_plan_response_from_model(self, db_session):
        plan = PlanRepository(db_session).get_by_name("Premium")

        response = PlanResponse.model_validate(plan)

        assert response.provider_price_id == PREMIUM_PRICE_ID
        assert response.monthly_usage_limit == 10000
