"""Buyer closing tracker CLI.

Usage:
    closing new OFFER-1 LISTING-9 --earnest 15000 --closing 2026-12-01
    closing list
    closing status
    closing stages
    closing done <task_id>
    closing undo <task_id>
    closing set-stage financing
    closing audit
    closing serve
"""

from __future__ import annotations

from datetime import date, datetime

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from closing.config import get_settings
from closing.models import TransactionStatus

app = typer.Typer(name="closing", help="Track a home purchase from contract to closing", no_args_is_help=True)
console = Console()


# ---------------------------------------------------------------------------
# Helper: get current transaction
# ---------------------------------------------------------------------------

def _get_txn(txn_id: str | None):
    """Load the selected transaction, or the most recently created one."""
    from closing.engine import progress

    user = get_settings().mock_user_id
    txn = progress.get_transaction(txn_id, user) if txn_id else progress.active_transaction(user)
    if not txn:
        if txn_id:
            console.print(f"[red]Transaction {txn_id} not found.[/red]")
        else:
            console.print("[red]No transactions found. Run 'closing new' first.[/red]")
        raise typer.Exit(1)
    return txn


# ---------------------------------------------------------------------------
# closing new
# ---------------------------------------------------------------------------

@app.command()
def new(
    offer_id: str = typer.Argument(..., help="Accepted offer ID"),
    listing_id: str = typer.Argument(..., help="Listing ID"),
    earnest: float = typer.Option(0, "--earnest", "-e", help="Earnest money deposit"),
    inspection_days: int = typer.Option(None, "--inspection-days", help="Inspection contingency days"),
    closing_date: datetime = typer.Option(None, "--closing", formats=["%Y-%m-%d"], help="Target closing date"),
):
    """Open a closing transaction for an accepted offer."""
    from pydantic import ValidationError

    from closing.engine import progress
    from closing.models import AcceptedOffer

    try:
        offer = AcceptedOffer(
            offer_id=offer_id,
            listing_id=listing_id,
            earnest_money=earnest,
            inspection_days=inspection_days,
            target_closing_date=closing_date.date() if closing_date else None,
        )
    except ValidationError as e:
        for err in e.errors():
            console.print(f"[red]{'.'.join(str(p) for p in err['loc'])}: {err['msg']}[/red]")
        raise typer.Exit(1)

    result = progress.create_transaction(offer, get_settings().mock_user_id)
    if result is None:
        console.print(f"[red]Offer {offer_id} already has a transaction.[/red]")
        raise typer.Exit(1)

    tid, created = result
    if not created:
        console.print(f"[yellow]Transaction already exists for this offer:[/yellow] {tid}")
        return

    txn = _get_txn(tid)
    console.print(f"\n[green]Transaction created:[/green] {txn.id}")
    console.print(f"  Offer: {txn.offer_id}  |  Listing: {txn.listing_id}")
    console.print(f"  Stage: {txn.stage_label}")
    console.print(f"  Tasks created: {len(txn.tasks)}")


# ---------------------------------------------------------------------------
# closing list
# ---------------------------------------------------------------------------

@app.command("list")
def list_transactions():
    """List all transactions."""
    from closing.engine import progress

    txns = progress.list_transactions(get_settings().mock_user_id)
    if not txns:
        console.print("[dim]No transactions. Run 'closing new' to create one.[/dim]")
        return

    table = Table(title="Transactions")
    table.add_column("ID", style="dim")
    table.add_column("Offer")
    table.add_column("Listing")
    table.add_column("Stage")
    table.add_column("Tasks", justify="right")
    table.add_column("Closing")

    for txn in txns:
        done = sum(1 for t in txn.tasks if t.completed)
        table.add_row(
            txn.id,
            txn.offer_id,
            txn.listing_id,
            txn.stage_label,
            f"{done}/{len(txn.tasks)}",
            str(txn.closing_date) if txn.closing_date else "",
        )

    console.print(table)


# ---------------------------------------------------------------------------
# closing status
# ---------------------------------------------------------------------------

@app.command()
def status(txn_id: str = typer.Option(None, "--txn", help="Transaction ID")):
    """Show the stage timeline and tasks for a transaction."""
    from closing.engine.stages import STAGE_DEFINITIONS, get_completed_stages
    from closing.engine.tasks import tasks_by_stage

    txn = _get_txn(txn_id)
    finished = {s.id for s in get_completed_stages(txn.status)}

    timeline = []
    for s in STAGE_DEFINITIONS:
        if s.id in finished:
            timeline.append(f"[green]✓ {s.label}[/green]")
        elif s.id == txn.status:
            timeline.append(f"[bold yellow]● {s.label}[/bold yellow]")
        else:
            timeline.append(f"[dim]○ {s.label}[/dim]")

    console.print(Panel(
        f"[bold]Offer {txn.offer_id}[/bold]  |  Listing {txn.listing_id}  |  ID: {txn.id}\n"
        f"Closing: {txn.closing_date or 'TBD'}\n\n" + "  →  ".join(timeline),
        title=f"Stage: {txn.stage_label}",
    ))

    table = Table(title="Tasks")
    table.add_column("ID", style="dim")
    table.add_column("Stage")
    table.add_column("Task")
    table.add_column("Due")
    table.add_column("Status")

    labels = {s.id: s.label for s in STAGE_DEFINITIONS}
    today = date.today()
    for stage_id, tasks in tasks_by_stage(txn.tasks).items():
        for t in tasks:
            if t.completed:
                state = "[green]DONE[/green]"
            elif t.due_date and t.due_date < today:
                state = "[red bold]OVERDUE[/red bold]"
            else:
                state = "[dim]OPEN[/dim]"
            table.add_row(
                t.id,
                labels.get(stage_id, "Other"),
                t.title,
                str(t.due_date) if t.due_date else "TBD",
                state,
            )

    console.print(table)


# ---------------------------------------------------------------------------
# closing stages
# ---------------------------------------------------------------------------

@app.command()
def stages():
    """Show the stage catalog and the tasks each stage requires."""
    from closing.engine.stages import STAGE_DEFINITIONS
    from closing.rules import missing_stage_titles

    table = Table(title="Closing Stages")
    table.add_column("#", justify="right", style="dim")
    table.add_column("Stage", style="bold")
    table.add_column("Required Tasks")
    table.add_column("Auto-advance")

    for i, s in enumerate(STAGE_DEFINITIONS, start=1):
        table.add_row(
            str(i),
            f"{s.label} ({s.id.value})",
            "\n".join(s.required_task_titles),
            "[green]yes[/green]" if s.auto_advance_on_complete else "[dim]no[/dim]",
        )

    console.print(table)
    for title in missing_stage_titles():
        console.print(f"[yellow]No task template creates \"{title}\"; that stage can only be set manually.[/yellow]")


# ---------------------------------------------------------------------------
# closing done / closing undo
# ---------------------------------------------------------------------------

def _set_task(task_id: str, completed: bool):
    from closing.engine import progress

    result = progress.update_task(task_id, completed, get_settings().mock_user_id)
    if not result:
        console.print(f"[red]Task {task_id} not found.[/red]")
        raise typer.Exit(1)

    mark = "[green]✓[/green]" if completed else "[yellow]☐[/yellow]"
    console.print(f"\n{mark} {result.task.title}")
    if result.advanced_to_label:
        console.print(f"\n  [green]All tasks complete — advanced to {result.advanced_to_label}.[/green]")


@app.command()
def done(task_id: str = typer.Argument(..., help="Task ID")):
    """Mark a task complete."""
    _set_task(task_id, True)


@app.command()
def undo(task_id: str = typer.Argument(..., help="Task ID")):
    """Mark a task incomplete."""
    _set_task(task_id, False)


# ---------------------------------------------------------------------------
# closing set-stage
# ---------------------------------------------------------------------------

@app.command("set-stage")
def set_stage(
    stage: TransactionStatus = typer.Argument(..., help="Stage ID"),
    txn_id: str = typer.Option(None, "--txn", help="Transaction ID"),
):
    """Manually move a transaction to a stage."""
    from closing.engine import progress

    txn = _get_txn(txn_id)
    updated = progress.set_status(txn.id, stage, get_settings().mock_user_id)
    console.print(f"\n[green]{txn.stage_label} → {updated.stage_label}[/green]")


# ---------------------------------------------------------------------------
# closing audit
# ---------------------------------------------------------------------------

@app.command()
def audit(txn_id: str = typer.Option(None, "--txn", help="Transaction ID")):
    """Show the audit trail for a transaction."""
    from closing.engine import progress

    txn = _get_txn(txn_id)
    rows = progress.audit_rows(txn.id, get_settings().mock_user_id) or []

    table = Table(title=f"Audit — {txn.id}")
    table.add_column("Time", style="dim")
    table.add_column("Action", style="bold")
    table.add_column("Detail")
    for r in rows:
        table.add_row(r["ts"], r["action"], r["detail"] or "")
    console.print(table)


# ---------------------------------------------------------------------------
# closing serve
# ---------------------------------------------------------------------------

@app.command()
def serve(
    host: str = typer.Option(None, "--host"),
    port: int = typer.Option(None, "--port"),
):
    """Run the JSON API server."""
    from closing.web import app as web_app

    settings = get_settings()
    web_app.run(host=host or settings.web_host, port=port or settings.web_port)


if __name__ == "__main__":
    app()
