"""Test fixtures and utilities."""

from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from pathlib import Path

import pytest

from giftbook.config import Config, CutoffConfig, IngestionConfig
from giftbook.schemas.transaction import Direction, NormalizedTransaction
from giftbook.state_store import AccountStatus, StateStore

KST = timezone(timedelta(hours=9))

# Provider output as it comes back from the scraping app (Result.ResultList shape)
SAMPLE_PROVIDER_OUTPUT = {
    "Output": {
        "Result": {
            "ResultList": [
                {
                    "TRN_DT": "20250510",
                    "TRN_TM": "121503",
                    "입금액": "100,000",
                    "출금액": "0",
                    "TRN_AF_AMT": "1,100,000",
                    "적요": "축하합니다",
                    "입금자명": "김철수",
                },
                {
                    "TRN_DT": "20250510",
                    "TRN_TM": "123000",
                    "입금액": "0",
                    "출금액": "30,000",
                    "TRN_AF_AMT": "1,070,000",
                    "적요": "식대",
                    "입금자명": "식당",
                },
                {
                    "TRN_DT": "20250510",
                    "TRN_TM": "124512",
                    "입금액": "50,000",
                    "출금액": "",
                    "TRN_AF_AMT": "1,120,000",
                    "적요": "결혼 축하",
                    "입금자명": "이영희",
                },
            ]
        }
    }
}


@pytest.fixture
def temp_db(tmp_path) -> Path:
    """Temporary database path for testing."""
    return tmp_path / "test_state.db"


@pytest.fixture
def config(temp_db) -> Config:
    """Config pointing at the temporary database."""
    return Config(
        cutoff=CutoffConfig(timezone="Asia/Seoul"),
        ingestion=IngestionConfig(reflect_batch_size=2),
        state_db_path=temp_db,
    )


@pytest.fixture
def store(temp_db) -> StateStore:
    """Create a fresh state store."""
    return StateStore(temp_db)


@pytest.fixture
def seeded(store) -> dict:
    """An event with an 18:00 ceremony end, two members and a connected account."""
    event_id = store.create_event(title="Wedding", event_id="evt-1")
    store.set_event_settings(event_id, "2025-05-10", "12:00", "18:00")
    owner_member_id = store.add_member(event_id, "user-groom", role="owner", side="groom")
    other_member_id = store.add_member(event_id, "user-bride", side="bride")
    account_id = store.create_scrape_account(
        event_id, "user-groom", "coocon", bank_code="004", status=AccountStatus.CONNECTED
    )
    store.update_scrape_account(
        account_id,
        AccountStatus.CONNECTED,
        bank_name="국민은행",
        account_masked="123-***-456",
        verified=True,
    )
    return {
        "event_id": event_id,
        "user_id": "user-groom",
        "member_id": owner_member_id,
        "other_user_id": "user-bride",
        "other_member_id": other_member_id,
        "account_id": account_id,
    }


@pytest.fixture
def before_cutoff():
    """Clock one second before the 18:00 KST ceremony end."""
    return lambda: datetime(2025, 5, 10, 17, 59, 59, tzinfo=KST)


@pytest.fixture
def after_cutoff():
    """Clock one second after the 18:00 KST ceremony end."""
    return lambda: datetime(2025, 5, 10, 18, 0, 1, tzinfo=KST)


@pytest.fixture
def sample_provider_output() -> dict:
    """Sample provider payload with two deposits and one withdrawal."""
    return SAMPLE_PROVIDER_OUTPUT


def _make_tx(
    amount: str = "50000",
    direction: Direction = Direction.IN,
    day: date = date(2025, 5, 10),
    memo: str | None = None,
    counterparty: str | None = "홍길동",
    **kwargs,
) -> NormalizedTransaction:
    """Build a NormalizedTransaction with sensible defaults."""
    return NormalizedTransaction(
        tx_date=day,
        amount=Decimal(amount),
        direction=direction,
        memo=memo,
        counterparty=counterparty,
        **kwargs,
    )


@pytest.fixture
def make_tx():
    """Factory for NormalizedTransactions."""
    return _make_tx
