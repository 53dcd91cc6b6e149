"""
Transaction creation, task completion, and stage auto-advancement.
"""
from datetime import date

import pytest

from closing import db
from closing.engine import progress
from closing.models import AcceptedOffer, TransactionStatus as S

USER = "user-1"


@pytest.fixture
def pushes(monkeypatch):
    sent = []
    monkeypatch.setattr(progress.notifications, "notify_stage_advanced",
                        lambda tid, stage: sent.append((tid, stage.id)) or True)
    return sent


def complete(tid, ids, *titles):
    return [progress.update_task(ids[t], True, USER) for t in titles]


class TestCreate:

    def test_creates_transaction_with_tasks(self, txn_id):
        txn = progress.get_transaction(txn_id, USER)
        assert txn.status == S.UNDER_CONTRACT
        assert txn.closing_date == date(2026, 12, 1)
        assert txn.earnest_money == 15000
        assert len(txn.tasks) == 10
        assert [t.order for t in txn.tasks] == list(range(1, 11))
        assert not any(t.completed for t in txn.tasks)

    def test_one_transaction_per_offer(self, txn_id, offer):
        assert progress.create_transaction(offer, USER) == (txn_id, False)
        assert len(progress.list_transactions(USER)) == 1

    def test_offer_owned_by_someone_else(self, txn_id, offer):
        assert progress.create_transaction(offer, "user-2") is None

    def test_created_is_audited(self, txn_id):
        actions = [r["action"] for r in progress.audit_rows(txn_id, USER)]
        assert actions == ["created"]

    def test_list_newest_first(self, txn_id):
        other = AcceptedOffer(offer_id="offer-2", listing_id="listing-2")
        tid2, _ = progress.create_transaction(other, USER)
        assert [t.id for t in progress.list_transactions(USER)] == [tid2, txn_id]
        assert progress.active_transaction(USER).id == tid2


class TestOwnership:

    def test_other_user_cannot_read(self, txn_id):
        assert progress.get_transaction(txn_id, "user-2") is None
        assert progress.list_transactions("user-2") == []
        assert progress.audit_rows(txn_id, "user-2") is None

    def test_other_user_cannot_update_task(self, txn_id, task_ids):
        ids = task_ids(txn_id)
        assert progress.update_task(ids["Send Earnest Money Deposit"], True, "user-2") is None

    def test_unknown_task(self):
        assert progress.update_task("missing", True, USER) is None

    def test_other_user_cannot_set_status(self, txn_id):
        assert progress.set_status(txn_id, S.CLOSED, "user-2") is None


class TestUpdateTask:

    def test_complete_sets_timestamp(self, txn_id, task_ids, pushes):
        ids = task_ids(txn_id)
        result = progress.update_task(ids["Order Appraisal"], True, USER)
        assert result.task.completed is True
        assert result.task.completed_at is not None
        assert result.advanced_to_stage is None

    def test_reopen_clears_timestamp(self, txn_id, task_ids, pushes):
        ids = task_ids(txn_id)
        progress.update_task(ids["Order Appraisal"], True, USER)
        result = progress.update_task(ids["Order Appraisal"], False, USER)
        assert result.task.completed is False
        assert result.task.completed_at is None

    def test_advances_one_stage(self, txn_id, task_ids, pushes):
        ids = task_ids(txn_id)
        [result] = complete(txn_id, ids, "Send Earnest Money Deposit")
        assert result.advanced_to_stage == S.INSPECTION_PERIOD
        assert result.advanced_to_label == "Inspection Period"
        assert progress.get_transaction(txn_id, USER).status == S.INSPECTION_PERIOD
        assert pushes == [(txn_id, S.INSPECTION_PERIOD)]

    def test_partial_stage_does_not_advance(self, txn_id, task_ids, pushes):
        ids = task_ids(txn_id)
        complete(txn_id, ids, "Send Earnest Money Deposit")
        [result] = complete(txn_id, ids, "Schedule Home Inspection")
        assert result.advanced_to_stage is None
        assert progress.get_transaction(txn_id, USER).status == S.INSPECTION_PERIOD

    def test_never_skips_stages(self, txn_id, task_ids, pushes):
        ids = task_ids(txn_id)
        # Inspection tasks finished early; only the earnest money completion advances
        complete(txn_id, ids, "Schedule Home Inspection", "Review Title Report")
        assert progress.get_transaction(txn_id, USER).status == S.UNDER_CONTRACT
        [result] = complete(txn_id, ids, "Send Earnest Money Deposit")
        assert result.advanced_to_stage == S.INSPECTION_PERIOD
        assert progress.get_transaction(txn_id, USER).status == S.INSPECTION_PERIOD

    def test_reopening_never_advances(self, txn_id, task_ids, pushes):
        ids = task_ids(txn_id)
        complete(txn_id, ids, "Send Earnest Money Deposit")
        progress.set_status(txn_id, S.UNDER_CONTRACT, USER)
        result = progress.update_task(ids["Send Earnest Money Deposit"], False, USER)
        assert result.advanced_to_stage is None
        assert progress.get_transaction(txn_id, USER).status == S.UNDER_CONTRACT

    def test_full_walk_to_closed(self, txn_id, task_ids, pushes):
        ids = task_ids(txn_id)
        advanced = [r.advanced_to_stage for r in complete(txn_id, ids, *ids) if r.advanced_to_stage]
        assert advanced == [S.INSPECTION_PERIOD, S.FINANCING, S.CLEAR_TO_CLOSE, S.CLOSED]
        assert progress.get_transaction(txn_id, USER).status == S.CLOSED

    def test_closed_is_terminal(self, txn_id, task_ids, pushes):
        ids = task_ids(txn_id)
        complete(txn_id, ids, *ids)
        [result] = complete(txn_id, ids, "Attend Closing")
        assert result.advanced_to_stage is None
        assert progress.get_transaction(txn_id, USER).status == S.CLOSED

    def test_repeat_completion_is_idempotent(self, txn_id, task_ids, pushes):
        ids = task_ids(txn_id)
        complete(txn_id, ids, "Send Earnest Money Deposit")
        [again] = complete(txn_id, ids, "Send Earnest Money Deposit")
        assert again.advanced_to_stage is None
        assert progress.get_transaction(txn_id, USER).status == S.INSPECTION_PERIOD

    def test_advance_is_audited(self, txn_id, task_ids, pushes):
        ids = task_ids(txn_id)
        complete(txn_id, ids, "Send Earnest Money Deposit")
        rows = progress.audit_rows(txn_id, USER)
        assert [r["action"] for r in rows] == ["created", "task_completed", "stage_advanced"]
        assert rows[-1]["detail"] == "under_contract -> inspection_period"


class TestCompareAndSet:

    def test_stale_status_is_not_applied(self, txn_id):
        with db.conn() as c:
            assert db.set_status_if(c, txn_id, "under_contract", "inspection_period") is True
            assert db.set_status_if(c, txn_id, "under_contract", "inspection_period") is False
            assert db.txn(c, txn_id)["status"] == "inspection_period"


class TestSetStatus:

    def test_manual_override_any_direction(self, txn_id):
        txn = progress.set_status(txn_id, S.CLEAR_TO_CLOSE, USER)
        assert txn.status == S.CLEAR_TO_CLOSE
        txn = progress.set_status(txn_id, S.INSPECTION_PERIOD, USER)
        assert txn.status == S.INSPECTION_PERIOD
        actions = [r["action"] for r in progress.audit_rows(txn_id, USER)]
        assert actions.count("status_override") == 2


class TestConcurrentCompletion:

    def test_advance_lands_while_another_completion_is_in_flight(self, txn_id, task_ids, pushes,
                                                                  monkeypatch):
        ids = task_ids(txn_id)
        complete(txn_id, ids, "Schedule Home Inspection")
        real_txn = db.txn
        interleaved = []

        def txn_then_other_writer(c, tid):
            # The earnest money completion commits between this caller's
            # ownership read and its task write
            if not interleaved:
                interleaved.append(None)
                interleaved[0] = progress.update_task(ids["Send Earnest Money Deposit"], True, USER)
            return real_txn(c, tid)

        monkeypatch.setattr(progress.db, "txn", txn_then_other_writer)
        result = progress.update_task(ids["Review Title Report"], True, USER)

        assert interleaved[0].advanced_to_stage == S.INSPECTION_PERIOD
        assert result.advanced_to_stage == S.FINANCING
        assert progress.get_transaction(txn_id, USER).status == S.FINANCING
        assert pushes == [(txn_id, S.INSPECTION_PERIOD), (txn_id, S.FINANCING)]
