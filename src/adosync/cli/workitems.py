"""
adosync CLI - work item fetch, query and update commands.

Thin callers of WorkItemSyncService: they parse arguments, run the async
operation, and report how many records succeeded or failed.
"""

import asyncio
import json
from pathlib import Path
from typing import Any

import typer
from pydantic import ValidationError
from rich.console import Console

from adosync.cli.errors import ExitCode, handle_error, print_error
from adosync.core.config import load_config
from adosync.core.config.models import SyncConfig
from adosync.core.workitems import SyncSummary, WorkItemSyncService, WorkItemUpdate

console = Console()


def _build_service(config: SyncConfig) -> WorkItemSyncService:
    return WorkItemSyncService.from_config(config)


def _is_debug(ctx: typer.Context) -> bool:
    return bool(ctx.obj and ctx.obj.get("debug"))


def _report(summary: SyncSummary, noun: str) -> None:
    if summary.all_succeeded:
        console.print(f"[green]✓[/green] {summary.succeeded}/{summary.total} {noun} succeeded")
    else:
        console.print(
            f"[yellow]⚠[/yellow]  {summary.succeeded}/{summary.total} {noun} succeeded, "
            f"[red]{summary.failed} failed[/red]"
        )


def _finish(results: list[Any], summary: SyncSummary, noun: str, as_json: bool) -> None:
    if as_json:
        console.print_json(data=results)
    else:
        _report(summary, noun)
    if not summary.all_succeeded:
        raise typer.Exit(ExitCode.GENERAL_ERROR)


def fetch(
    ctx: typer.Context,
    ids: list[int] = typer.Argument(..., help="Work item ids to fetch"),
    batch: bool = typer.Option(
        False,
        "--batch",
        "-b",
        help="Use $batch envelopes (up to 200 items per request) instead of one request per id",
    ),
    parallel: bool = typer.Option(
        False,
        "--parallel",
        "-p",
        help="Send $batch envelopes concurrently (implies --batch)",
    ),
    as_json: bool = typer.Option(False, "--json", help="Print fetched work items as JSON"),
    no_progress: bool = typer.Option(False, "--no-progress", help="Hide the progress bar"),
) -> None:
    """
    Fetch work items by id.

    Examples:
        adosync fetch 101 102 103
        adosync fetch 101 102 103 --batch
        adosync fetch $(seq 1000 1500) --parallel --json
    """
    debug = _is_debug(ctx)
    try:
        config = load_config(use_cache=False)
        if no_progress:
            config = config.model_copy(update={"show_progress": False})

        async def _run() -> list[Any]:
            async with _build_service(config) as service:
                if parallel:
                    return await service.parallel_batch_fetch_work_items(ids)
                if batch:
                    result = await service.batch_fetch_work_items(ids)
                    return result.ok_values()
                return await service.fetch_work_items(ids)

        results = asyncio.run(_run())
    except Exception as e:
        raise typer.Exit(handle_error(e, "fetch", debug=debug))

    _finish(results, WorkItemSyncService.summarize(results), "work items", as_json)


def query(
    ctx: typer.Context,
    queries: list[str] = typer.Argument(..., help="WIQL queries to run"),
    as_json: bool = typer.Option(False, "--json", help="Print query results as JSON"),
) -> None:
    """
    Run one or more WIQL queries concurrently.

    Examples:
        adosync query "SELECT [System.Id] FROM WorkItems WHERE [System.State] = 'Active'"
    """
    debug = _is_debug(ctx)
    try:
        config = load_config(use_cache=False)

        async def _run() -> list[Any]:
            async with _build_service(config) as service:
                return await service.run_queries(queries)

        results = asyncio.run(_run())
    except Exception as e:
        raise typer.Exit(handle_error(e, "query", debug=debug))

    if not as_json:
        for text, result in zip(queries, results):
            if result is not None:
                count = len(result.get("workItems") or [])
                console.print(f"[cyan]{count:>6}[/cyan]  {text}")
    _finish(results, WorkItemSyncService.summarize(results), "queries", as_json)


def _load_updates(path: Path) -> list[WorkItemUpdate]:
    data = json.loads(path.read_text())
    if not isinstance(data, list):
        raise ValueError("Update file must contain a JSON list of {id, operations} objects")
    return [WorkItemUpdate.model_validate(entry) for entry in data]


def update(
    ctx: typer.Context,
    file: Path = typer.Argument(
        ...,
        exists=True,
        dir_okay=False,
        help="JSON file with a list of {id, operations} updates",
    ),
    batch: bool = typer.Option(
        True,
        "--batch/--no-batch",
        help="Send updates through $batch envelopes",
    ),
    as_json: bool = typer.Option(False, "--json", help="Print updated work items as JSON"),
) -> None:
    """
    Apply JSON-patch updates to work items.

    Example update file:
        [{"id": 42, "operations": [{"op": "add", "path": "/fields/System.State", "value": "Closed"}]}]
    """
    debug = _is_debug(ctx)
    try:
        updates = _load_updates(file)
    except (OSError, ValueError, ValidationError) as e:
        print_error(f"Cannot read updates from {file}", reason=str(e))
        raise typer.Exit(ExitCode.USER_ERROR)

    try:
        config = load_config(use_cache=False)

        async def _run() -> list[Any]:
            async with _build_service(config) as service:
                if batch:
                    result = await service.batch_update_work_items(updates)
                    return result.ok_values()
                return await service.update_work_items(updates)

        results = asyncio.run(_run())
    except Exception as e:
        raise typer.Exit(handle_error(e, "update", debug=debug))

    _finish(results, WorkItemSyncService.summarize(results), "updates", as_json)
