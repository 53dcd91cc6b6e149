"""
Pytest configuration and shared fixtures.
"""

from datetime import date

import pytest

from closing.models import AcceptedOffer

USER = "user-1"


@pytest.fixture(autouse=True)
def data_dir(tmp_path, monkeypatch):
    """Point the SQLite store at a temp dir and disable push providers."""
    monkeypatch.setenv("CLOSING_DATA_DIR", str(tmp_path))
    monkeypatch.setenv("CLOSING_MOCK_USER_ID", USER)
    monkeypatch.setenv("CLOSING_PUSHOVER_USER_KEY", "")
    monkeypatch.setenv("CLOSING_PUSHOVER_API_TOKEN", "")
    monkeypatch.setenv("CLOSING_NTFY_TOPIC", "")
    return tmp_path


@pytest.fixture
def offer():
    return AcceptedOffer(
        offer_id="offer-1",
        listing_id="listing-1",
        earnest_money=15000,
        inspection_days=7,
        target_closing_date=date(2026, 12, 1),
    )


@pytest.fixture
def txn_id(offer):
    from closing.engine import progress

    tid, created = progress.create_transaction(offer, USER, acceptance=date(2026, 10, 1))
    assert created
    return tid


@pytest.fixture
def task_ids():
    """Return a lookup of task title -> task id for a transaction."""
    from closing.engine import progress

    def lookup(tid: str) -> dict[str, str]:
        txn = progress.get_transaction(tid, USER)
        return {t.title: t.id for t in txn.tasks}

    return lookup
