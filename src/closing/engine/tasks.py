"""Default closing task generation and stage grouping."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import date, timedelta

from closing import rules
from closing.engine.stages import STAGE_DEFINITIONS
from closing.models import AcceptedOffer, Task, TransactionStatus


def closing_anchor(offer: AcceptedOffer, acceptance: date, default_closing_days: int = 45) -> date:
    """Target closing date, or acceptance plus the default escrow length."""
    return offer.target_closing_date or acceptance + timedelta(days=default_closing_days)


def due_date(tpl: dict, offer: AcceptedOffer, acceptance: date, closing: date) -> date:
    base = closing if tpl.get("offset_from") == "closing" else acceptance
    days = tpl.get("days", 0)
    if key := tpl.get("offset_key"):
        override = getattr(offer, key, None)
        if override is not None:
            days = override
    if tpl.get("direction") == "before":
        days = -abs(days)
    return base + timedelta(days=days)


def build_tasks(offer: AcceptedOffer, acceptance: date, default_closing_days: int = 45) -> list[dict]:
    """Return the default task list for a newly accepted offer.

    Each dict has: title, description, due_date, order.
    """
    closing = closing_anchor(offer, acceptance, default_closing_days)
    out = []
    for order, tpl in enumerate(rules.task_templates(), start=1):
        out.append({
            "title": tpl["title"],
            "description": tpl.get("description", "").format(earnest_money=offer.earnest_money),
            "due_date": due_date(tpl, offer, acceptance, closing),
            "order": order,
        })
    return out


def tasks_by_stage(tasks: Iterable[Task]) -> dict[TransactionStatus | None, list[Task]]:
    """Group tasks under the stage whose required titles include them.

    Tasks matching no stage are grouped under None.
    """
    owner = {title: s.id for s in STAGE_DEFINITIONS for title in s.required_task_titles}
    groups: dict[TransactionStatus | None, list[Task]] = {s.id: [] for s in STAGE_DEFINITIONS}
    for t in tasks:
        groups.setdefault(owner.get(t.title), []).append(t)
    return groups
