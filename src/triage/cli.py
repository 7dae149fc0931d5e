"""Command line entry points."""

from __future__ import annotations

import asyncio
import contextlib
import json
import signal
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from triage.app import AppRuntime
from triage.batch import TicketOutcome, load_tickets, run_batch
from triage.config import load_settings
from triage.errors import ConfigurationError
from triage.logging_utils import configure_logging
from triage.types import Ticket

app = typer.Typer(
    name="triage",
    help="IT helpdesk ticket triage with runbook retrieval.",
    add_completion=False,
    rich_markup_mode="rich",
)
console = Console()


def _exit_with_error(message: str) -> None:
    console.print(f"[red]error:[/red] {message}")
    raise typer.Exit(1)


async def _run_tickets(runtime: AppRuntime, tickets: list[Ticket]) -> list[TicketOutcome]:
    """Run the batch; SIGINT cancels unfinished tickets at their next turn."""
    cancel_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    with contextlib.suppress(NotImplementedError, ValueError):
        loop.add_signal_handler(signal.SIGINT, cancel_event.set)
    try:
        return await run_batch(
            tickets,
            runtime.new_engine,
            max_concurrency=runtime.settings.max_concurrent_tickets,
            cancel_event=cancel_event,
        )
    finally:
        with contextlib.suppress(NotImplementedError, ValueError):
            loop.remove_signal_handler(signal.SIGINT)


@app.command()
def run(
    tickets: Path = typer.Argument(..., help="JSONL file with one {id, text} ticket per line"),
    runbooks: Optional[Path] = typer.Option(None, "--runbooks", "-r", help="Runbook chunk store (JSON/JSONL)"),
    model: Optional[str] = typer.Option(None, "--model", "-m", help="Model in provider:model form"),
    concurrency: Optional[int] = typer.Option(None, "--concurrency", "-c", help="Tickets processed in parallel"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write JSONL outcomes to this file"),
) -> None:
    """Triage every ticket in TICKETS."""
    try:
        settings = load_settings(runbooks_path=runbooks, model=model, max_concurrent_tickets=concurrency)
        configure_logging(profile="console", level=settings.log_level)
        runtime = AppRuntime(settings)
        loaded = load_tickets(tickets)
        outcomes = asyncio.run(_run_tickets(runtime, loaded))
    except ConfigurationError as exc:
        _exit_with_error(str(exc))
        return

    table = Table(title="Triage results")
    table.add_column("Ticket")
    table.add_column("Status")
    table.add_column("Category")
    table.add_column("Priority")
    table.add_column("Detail", overflow="fold")
    for outcome in outcomes:
        disposition = outcome.answer.disposition if outcome.answer is not None else None
        detail = outcome.answer.text if outcome.answer is not None else (outcome.error or "")
        table.add_row(
            outcome.ticket_id,
            outcome.status,
            (disposition.category if disposition else None) or "-",
            (disposition.priority if disposition else None) or "-",
            detail[:200],
        )
    console.print(table)

    if output is not None:
        with output.open("w", encoding="utf-8") as file:
            for outcome in outcomes:
                file.write(json.dumps(outcome.to_dict(), ensure_ascii=False) + "\n")

    if any(outcome.status != "ok" for outcome in outcomes):
        raise typer.Exit(2)


@app.command()
def search(
    query: str = typer.Argument(..., help="Symptom or question"),
    runbooks: Optional[Path] = typer.Option(None, "--runbooks", "-r", help="Runbook chunk store (JSON/JSONL)"),
    top_k: Optional[int] = typer.Option(None, "--top-k", "-k", help="Maximum chunks to show"),
    threshold: Optional[float] = typer.Option(None, "--threshold", "-t", help="Minimum cosine similarity"),
) -> None:
    """Query the runbook index directly."""
    try:
        settings = load_settings(runbooks_path=runbooks, retrieval_top_k=top_k, retrieval_threshold=threshold)
        runtime = AppRuntime(settings)
    except ConfigurationError as exc:
        _exit_with_error(str(exc))
        return

    matches = runtime.index.retrieve_chunks(
        query, top_k=settings.retrieval_top_k, threshold=settings.retrieval_threshold
    )
    if not matches:
        console.print("no relevant runbook")
        return
    for match in matches:
        console.print(f"{match.score:.3f}  [bold]{match.chunk.id}[/bold] ({match.chunk.category})")
        console.print(f"    {match.chunk.text}", markup=False, highlight=False)
