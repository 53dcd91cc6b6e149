"""Transaction lifecycle: creation, task completion, and stage advancement."""

from __future__ import annotations

from datetime import date, datetime
from uuid import uuid4

from closing import db
from closing.config import get_settings
from closing.engine.stages import get_stage_definition, should_auto_advance
from closing.engine.tasks import build_tasks
from closing.integrations import notifications
from closing.models import (
    AcceptedOffer,
    StageDefinition,
    Task,
    TaskState,
    TaskUpdateResult,
    Transaction,
    TransactionStatus,
)


def _load(c, row: dict) -> Transaction:
    tasks = [Task.from_row(r) for r in db.tasks(c, row["id"])]
    return Transaction.from_row(row, tasks)


def _owned(c, tid: str, user_id: str) -> dict | None:
    t = db.txn(c, tid)
    if not t or t["user_id"] != user_id:
        return None
    return t


# ── Creation ─────────────────────────────────────────────────────────────────

def create_transaction(offer: AcceptedOffer, user_id: str,
                       acceptance: date | None = None) -> tuple[str, bool] | None:
    """Open a transaction for an accepted offer and create its closing tasks.

    Returns (transaction_id, created). An offer that already has a
    transaction returns the existing id with created=False, or None when
    that transaction belongs to another user.
    """
    settings = get_settings()
    acceptance = acceptance or date.today()

    with db.conn() as c:
        existing = db.txn_for_offer(c, offer.offer_id)
        if existing:
            if existing["user_id"] != user_id:
                return None
            return existing["id"], False

        tid = uuid4().hex[:12]
        c.execute(
            "INSERT INTO transactions(id,user_id,offer_id,listing_id,status,closing_date,earnest_money) "
            "VALUES(?,?,?,?,?,?,?)",
            (
                tid, user_id, offer.offer_id, offer.listing_id,
                TransactionStatus.UNDER_CONTRACT.value,
                offer.target_closing_date.isoformat() if offer.target_closing_date else None,
                offer.earnest_money,
            ),
        )
        tasks = build_tasks(offer, acceptance, settings.default_closing_days)
        for t in tasks:
            c.execute(
                "INSERT INTO tasks(id,txn,title,description,due,sort_order) VALUES(?,?,?,?,?,?)",
                (uuid4().hex[:12], tid, t["title"], t["description"], t["due_date"].isoformat(), t["order"]),
            )
        db.log(c, tid, "created", f"offer={offer.offer_id} listing={offer.listing_id} tasks={len(tasks)}")
    return tid, True


# ── Queries ──────────────────────────────────────────────────────────────────

def get_transaction(txn_id: str, user_id: str) -> Transaction | None:
    with db.conn() as c:
        t = _owned(c, txn_id, user_id)
        return _load(c, t) if t else None


def list_transactions(user_id: str) -> list[Transaction]:
    with db.conn() as c:
        rows = c.execute(
            "SELECT * FROM transactions WHERE user_id=? ORDER BY created DESC, rowid DESC", (user_id,)
        ).fetchall()
        return [_load(c, dict(r)) for r in rows]


def active_transaction(user_id: str) -> Transaction | None:
    """Most recently created transaction for the user."""
    with db.conn() as c:
        t = db.active(c, user_id)
        return _load(c, t) if t else None


def audit_rows(txn_id: str, user_id: str) -> list[dict] | None:
    with db.conn() as c:
        if not _owned(c, txn_id, user_id):
            return None
        return db.audit(c, txn_id)


# ── Task completion ──────────────────────────────────────────────────────────

def update_task(task_id: str, completed: bool, user_id: str) -> TaskUpdateResult | None:
    """Mark a task complete or incomplete, advancing the stage when it is done.

    Returns None when the task does not exist or belongs to another user.
    The stage is re-read after the task write has taken the database write
    lock, then written with a compare-and-set on that value, so a concurrent
    advance is neither applied twice nor evaluated against a stale stage.
    """
    advanced: StageDefinition | None = None

    with db.conn() as c:
        row = db.task(c, task_id)
        t = _owned(c, row["txn"], user_id) if row else None
        if not t:
            return None

        tid = t["id"]
        completed_at = datetime.now().isoformat(timespec="seconds") if completed else None
        c.execute("UPDATE tasks SET completed=?, completed_at=? WHERE id=?",
                  (int(completed), completed_at, task_id))
        c.execute(f"UPDATE transactions SET updated={db.NOW} WHERE id=?", (tid,))
        db.log(c, tid, "task_completed" if completed else "task_reopened", row["title"])

        if completed:
            # Read under the write lock taken by the UPDATEs above
            status = db.txn(c, tid)["status"]
            states = [TaskState.from_row(r) for r in db.tasks(c, tid)]
            nxt = should_auto_advance(status, states)
            if nxt and db.set_status_if(c, tid, status, nxt.value):
                db.log(c, tid, "stage_advanced", f"{status} -> {nxt.value}")
                advanced = get_stage_definition(nxt)

        task = Task.from_row(db.task(c, task_id))

    if advanced:
        notifications.notify_stage_advanced(tid, advanced)

    return TaskUpdateResult(
        task=task,
        advanced_to_stage=advanced.id if advanced else None,
        advanced_to_label=advanced.label if advanced else None,
    )


# ── Manual override ──────────────────────────────────────────────────────────

def set_status(txn_id: str, status: TransactionStatus, user_id: str) -> Transaction | None:
    """Set the stage directly, in either direction."""
    with db.conn() as c:
        t = _owned(c, txn_id, user_id)
        if not t:
            return None
        c.execute(f"UPDATE transactions SET status=?, updated={db.NOW} WHERE id=?",
                  (status.value, txn_id))
        db.log(c, txn_id, "status_override", f"{t['status']} -> {status.value}")
        return _load(c, db.txn(c, txn_id))
