"""Core data models for closing transactions, stages, and tasks."""

from __future__ import annotations

from collections.abc import Mapping
from datetime import date, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, StrictBool


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class TransactionStatus(str, Enum):
    UNDER_CONTRACT = "under_contract"
    INSPECTION_PERIOD = "inspection_period"
    FINANCING = "financing"
    CLEAR_TO_CLOSE = "clear_to_close"
    CLOSED = "closed"


# ---------------------------------------------------------------------------
# Stage catalog records
# ---------------------------------------------------------------------------

class StageDefinition(BaseModel):
    model_config = {"frozen": True}

    id: TransactionStatus
    label: str
    description: str = ""
    # Task titles that must all be completed before the stage is done
    required_task_titles: tuple[str, ...] = ()
    # False only for the terminal stage
    auto_advance_on_complete: bool = True
    icon: str = ""


class TaskState(BaseModel):
    """The two task attributes the stage engine looks at."""

    model_config = {"frozen": True}

    title: str
    completed: bool = False

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> TaskState:
        return cls(title=row["title"], completed=bool(row["completed"]))


# ---------------------------------------------------------------------------
# Offer (input to transaction creation)
# ---------------------------------------------------------------------------

class AcceptedOffer(BaseModel):
    offer_id: str = Field(min_length=1)
    listing_id: str = Field(min_length=1)
    earnest_money: float = Field(default=0, ge=0)
    inspection_days: int | None = Field(default=None, ge=0, le=30)
    target_closing_date: date | None = None


# ---------------------------------------------------------------------------
# Task / Transaction
# ---------------------------------------------------------------------------

class Task(BaseModel):
    id: str
    transaction_id: str
    title: str
    description: str = ""
    due_date: date | None = None
    completed: bool = False
    completed_at: datetime | None = None
    order: int = 0

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> Task:
        return cls(
            id=row["id"],
            transaction_id=row["txn"],
            title=row["title"],
            description=row["description"] or "",
            due_date=row["due"],
            completed=bool(row["completed"]),
            completed_at=row["completed_at"],
            order=row["sort_order"],
        )


class Transaction(BaseModel):
    id: str
    user_id: str
    offer_id: str
    listing_id: str
    status: TransactionStatus = TransactionStatus.UNDER_CONTRACT
    closing_date: date | None = None
    earnest_money: float = 0
    created_at: datetime | None = None
    updated_at: datetime | None = None
    tasks: list[Task] = Field(default_factory=list)

    @classmethod
    def from_row(cls, row: Mapping[str, Any], tasks: list[Task] | None = None) -> Transaction:
        return cls(
            id=row["id"],
            user_id=row["user_id"],
            offer_id=row["offer_id"],
            listing_id=row["listing_id"],
            status=row["status"],
            closing_date=row["closing_date"],
            earnest_money=row["earnest_money"] or 0,
            created_at=row["created"],
            updated_at=row["updated"],
            tasks=tasks or [],
        )

    @property
    def stage(self) -> StageDefinition | None:
        from closing.engine.stages import get_stage_definition
        return get_stage_definition(self.status)

    @property
    def stage_label(self) -> str:
        stage = self.stage
        return stage.label if stage else self.status.value

    def task_states(self) -> list[TaskState]:
        return [TaskState(title=t.title, completed=t.completed) for t in self.tasks]


# ---------------------------------------------------------------------------
# Request bodies / results
# ---------------------------------------------------------------------------

class TaskUpdate(BaseModel):
    completed: StrictBool


class StatusUpdate(BaseModel):
    status: TransactionStatus


class TaskUpdateResult(BaseModel):
    task: Task
    advanced_to_stage: TransactionStatus | None = None
    advanced_to_label: str | None = None


# ---------------------------------------------------------------------------
# Notification
# ---------------------------------------------------------------------------

class Notification(BaseModel):
    title: str
    body: str
    priority: str = "normal"  # low, normal, high, urgent
    url: str = ""
    transaction_id: str = ""
    tags: list[str] = Field(default_factory=list)
