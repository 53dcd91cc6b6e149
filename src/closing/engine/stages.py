"""Transaction stage catalog and auto-advancement rules.

A closing transaction moves through five fixed stages. Each stage lists the
task titles that must be completed before the transaction moves on; task
titles are the only link between a task and its stage.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence

from closing.models import StageDefinition, TaskState, TransactionStatus

STAGE_DEFINITIONS: tuple[StageDefinition, ...] = (
    StageDefinition(
        id=TransactionStatus.UNDER_CONTRACT,
        label="Under Contract",
        description="Initial contract execution and earnest money deposit",
        required_task_titles=(
            "Send Earnest Money Deposit",
        ),
        auto_advance_on_complete=True,
        icon="document",
    ),
    StageDefinition(
        id=TransactionStatus.INSPECTION_PERIOD,
        label="Inspection Period",
        description="Home inspection and due diligence",
        required_task_titles=(
            "Schedule Home Inspection",
            "Review Title Report",
        ),
        auto_advance_on_complete=True,
        icon="search",
    ),
    StageDefinition(
        id=TransactionStatus.FINANCING,
        label="Financing",
        description="Loan application, appraisal, and underwriting",
        required_task_titles=(
            "Submit Loan Application",
            "Order Appraisal",
        ),
        auto_advance_on_complete=True,
        icon="dollar",
    ),
    StageDefinition(
        id=TransactionStatus.CLEAR_TO_CLOSE,
        label="Clear to Close",
        description="Final preparations for closing",
        required_task_titles=(
            "Secure Homeowner's Insurance",
            "Review Closing Disclosure",
            "Complete Final Walkthrough",
            "Wire Closing Funds",
        ),
        auto_advance_on_complete=True,
        icon="check-circle",
    ),
    StageDefinition(
        id=TransactionStatus.CLOSED,
        label="Closed",
        description="Transaction complete - you own the home!",
        required_task_titles=(
            "Attend Closing",
        ),
        auto_advance_on_complete=False,  # terminal
        icon="checkmark",
    ),
)

Catalog = Sequence[StageDefinition]


def _index(status: str, catalog: Catalog) -> int:
    return next((i for i, s in enumerate(catalog) if s.id == status), -1)


def get_stage_definition(status: str, catalog: Catalog = STAGE_DEFINITIONS) -> StageDefinition | None:
    """Return the stage definition for a status, or None if unknown."""
    return next((s for s in catalog if s.id == status), None)


def get_next_stage(status: str, catalog: Catalog = STAGE_DEFINITIONS) -> StageDefinition | None:
    """Return the stage after `status`, or None if unknown or last."""
    idx = _index(status, catalog)
    if idx == -1 or idx >= len(catalog) - 1:
        return None
    return catalog[idx + 1]


def get_completed_stages(status: str, catalog: Catalog = STAGE_DEFINITIONS) -> list[StageDefinition]:
    """Return every stage strictly before `status` (display only)."""
    idx = _index(status, catalog)
    if idx == -1:
        return []
    return list(catalog[:idx])


def are_stage_tasks_complete(stage: StageDefinition, completed_task_titles: Iterable[str]) -> bool:
    """True iff every required title of `stage` is among the completed titles.

    An empty requirement list is complete.
    """
    done = set(completed_task_titles)
    return all(title in done for title in stage.required_task_titles)


def should_auto_advance(
    current_status: str,
    all_tasks: Iterable[TaskState],
    catalog: Catalog = STAGE_DEFINITIONS,
) -> TransactionStatus | None:
    """Decide whether a transaction moves to its next stage.

    Args:
        current_status: The transaction's current stage id.
        all_tasks: Every task of the transaction, completed or not.
        catalog: Stage catalog to evaluate against.

    Returns:
        The id of the next stage when all of the current stage's required
        tasks are completed, otherwise None. Unknown stages and the terminal
        stage never advance. The result depends only on the arguments.
    """
    current = get_stage_definition(current_status, catalog)
    if current is None:
        return None
    if not current.auto_advance_on_complete:
        return None

    completed = {t.title for t in all_tasks if t.completed}
    if not are_stage_tasks_complete(current, completed):
        return None

    nxt = get_next_stage(current_status, catalog)
    if nxt is None:
        return None
    return nxt.id
