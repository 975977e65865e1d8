"""
Copyright (c) 2025 Eric C. Mumford (@heymumford)
This file is part of XRAYLINK, licensed under the MIT License.
See LICENSE file for details.
"""

"""
Command line interface for XRAYLINK.

Every command builds an XrayIntegrationEngine from the application config,
runs one engine operation and renders the result with rich.
"""

import asyncio
import json
import logging
from collections.abc import Awaitable, Callable
from enum import Enum
from pathlib import Path
from typing import Any, TypeVar

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from xraylink import __version__
from xraylink.config_store import StoredConfig, XrayConfigStore
from xraylink.core.config import get_app_config, init_app_config
from xraylink.engine import XrayIntegrationEngine
from xraylink.errors import XrayLinkError
from xraylink.link_diff import compute_diff
from xraylink.models import (
    ImportJob,
    LinkCategory,
    LinkSelection,
    ReconciliationResult,
    TestCaseRecord,
)

T = TypeVar("T")

# Initialize console for rich output
console = Console()

# Initialize the CLI app
app = typer.Typer(help="XRAYLINK - Xray Cloud integration engine")


def configure_app(debug: bool = False):
    """
    Configure the application with the specified settings.

    Args:
    ----
        debug: Whether to enable debug mode

    """
    config = init_app_config(debug=debug, app_version=__version__)
    config.configure_logging()
    return config


def version_callback(value: bool):
    if value:
        console.print(f"XRAYLINK version: {__version__}")
        raise typer.Exit()


@app.callback()
def callback(
    debug: bool = typer.Option(False, "--debug", help="Enable debug mode with verbose logging"),
    version: bool = typer.Option(
        False,
        "--version",
        callback=version_callback,
        is_eager=True,
        help="Show the application version and exit",
    ),
):
    """
    XRAYLINK - Import test cases into Xray Cloud and manage their links.

    Use --debug to enable verbose logging.
    """
    configure_app(debug=debug)


# Get the logger after configuration
logger = logging.getLogger("xraylink")


class LookupKind(str, Enum):
    TEST_PLANS = "test-plans"
    TEST_EXECUTIONS = "test-executions"
    TEST_SETS = "test-sets"
    PRECONDITIONS = "preconditions"

    @property
    def category(self) -> LinkCategory:
        return {
            LookupKind.TEST_PLANS: LinkCategory.TEST_PLANS,
            LookupKind.TEST_EXECUTIONS: LinkCategory.TEST_EXECUTIONS,
            LookupKind.TEST_SETS: LinkCategory.TEST_SETS,
            LookupKind.PRECONDITIONS: LinkCategory.PRECONDITIONS,
        }[self]


def _run_engine(operation: Callable[[XrayIntegrationEngine], Awaitable[T]]) -> T:
    """Run one engine operation; typed errors print a single message and exit 1."""

    async def runner() -> T:
        async with XrayIntegrationEngine.from_settings(get_app_config().xray) as engine:
            return await operation(engine)

    try:
        return asyncio.run(runner())
    except XrayLinkError as e:
        console.print(f"Error: {e.message}", style="red")
        raise typer.Exit(code=1)


def _load_json(path: Path) -> Any:
    try:
        with open(path, encoding="utf-8") as f:
            return json.load(f)
    except FileNotFoundError:
        console.print(f"Error: file not found: {path}", style="red")
        raise typer.Exit(code=1)
    except json.JSONDecodeError as e:
        console.print(f"Error: {path} is not valid JSON: {e}", style="red")
        raise typer.Exit(code=1)


def _load_records(path: Path) -> list[TestCaseRecord]:
    data = _load_json(path)
    if isinstance(data, dict):
        data = data.get("testCases", [data])
    try:
        return [TestCaseRecord.model_validate(item) for item in data]
    except ValidationError as e:
        console.print(f"Error: invalid test case in {path}: {e}", style="red")
        raise typer.Exit(code=1)


def _load_selection(path: Path) -> LinkSelection:
    try:
        return LinkSelection.model_validate(_load_json(path))
    except ValidationError as e:
        console.print(f"Error: invalid link selection in {path}: {e}", style="red")
        raise typer.Exit(code=1)


def _print_job(job: ImportJob) -> None:
    if not job.succeeded:
        console.print(f"Import job {job.job_id} failed: {job.error}", style="red")
        return

    console.print(f"✅ Import job {job.job_id} completed", style="green")
    table = Table(title="Created Tests")
    table.add_column("ID")
    table.add_column("Key")
    for issue in job.created_issues:
        table.add_row(issue.id, issue.key or "")
    console.print(table)


def _print_reconciliation(result: ReconciliationResult) -> None:
    table = Table(title="Link Results")
    table.add_column("Category")
    table.add_column("Added")
    table.add_column("Removed")
    table.add_column("Failed")
    for category in LinkCategory:
        category_result = result.for_category(category)
        operations = category_result.added + category_result.removed
        table.add_row(
            category.label,
            str(sum(1 for op in category_result.added if op.success)),
            str(sum(1 for op in category_result.removed if op.success)),
            str(sum(1 for op in operations if not op.success)),
        )
    console.print(table)

    if result.folder:
        console.print(f"Folder: {result.folder.original} -> {result.folder.current}")

    for warning in result.warnings:
        console.print(f"⚠️  {warning}", style="yellow")
    if not result.warnings:
        console.print("✅ All links applied", style="green")


@app.command("configure")
def configure(
    client_id: str = typer.Option(..., prompt=True, help="Xray API client ID"),
    client_secret: str = typer.Option(..., prompt=True, hide_input=True, help="Xray API client secret"),
    jira_base_url: str | None = typer.Option(None, help="Jira base URL, e.g. https://example.atlassian.net"),
    project_key: str | None = typer.Option(None, help="Default Jira project key"),
    skip_validation: bool = typer.Option(False, help="Store the credentials without checking them"),
):
    """
    Validate and store Xray API credentials.
    """
    settings = get_app_config().xray

    if not skip_validation:
        check = _run_engine(lambda engine: engine.validate_credentials(client_id, client_secret))
        if not check.success:
            console.print(f"❌ {check.error}", style="red")
            raise typer.Exit(code=1)

    store = XrayConfigStore(settings.config_path)
    store.write_config(
        StoredConfig(
            client_id=client_id,
            client_secret=client_secret,
            jira_base_url=jira_base_url,
            project_key=project_key,
        )
    )
    console.print(f"Configuration saved to {settings.config_path}", style="green")


@app.command("validate")
def validate():
    """
    Check the stored credentials against Xray Cloud.
    """
    check = _run_engine(lambda engine: engine.validate_credentials())
    if check.success:
        console.print("✅ Credentials are valid", style="green")
    else:
        console.print(f"❌ {check.error}", style="red")
        raise typer.Exit(code=1)


@app.command("import")
def import_tests(
    records_file: Path = typer.Argument(..., help="JSON file with test case records"),
    project_key: str | None = typer.Option(None, help="Target Jira project key"),
    wait: bool = typer.Option(True, "--wait/--no-wait", help="Poll the import job until it finishes"),
):
    """
    Bulk import test cases into Xray Cloud.
    """
    records = _load_records(records_file)
    console.print(f"Importing {len(records)} test case(s)")

    if not wait:
        submission = _run_engine(lambda engine: engine.submit_import(records, project_key=project_key))
        console.print(f"Import job submitted: {submission.job_id}", style="green")
        return

    with console.status("Waiting for import job to finish..."):
        job = _run_engine(lambda engine: engine.submit_and_await(records, project_key=project_key))
    _print_job(job)
    if not job.succeeded:
        raise typer.Exit(code=1)


@app.command("status")
def status(
    job_id: str = typer.Argument(..., help="Bulk import job ID"),
    max_attempts: int | None = typer.Option(None, help="Maximum number of status requests"),
    interval: float | None = typer.Option(None, help="Seconds between status requests"),
):
    """
    Follow a bulk import job until it finishes.
    """
    with console.status(f"Polling import job {job_id}..."):
        job = _run_engine(
            lambda engine: engine.await_import(job_id, max_attempts=max_attempts, interval=interval)
        )
    _print_job(job)
    if not job.succeeded:
        raise typer.Exit(code=1)


@app.command("lookup")
def lookup(
    kind: LookupKind = typer.Argument(..., help="What to list"),
    project_key: str = typer.Argument(..., help="Jira project key"),
):
    """
    List test plans, executions, sets or preconditions of a project.
    """
    targets = _run_engine(lambda engine: engine.list_targets(kind.category, project_key))

    table = Table(title=f"{kind.category.label}s in {project_key}")
    table.add_column("Issue ID")
    table.add_column("Key")
    table.add_column("Summary")
    for target in targets:
        table.add_row(target.issue_id, target.key or "", target.summary or "")
    console.print(table)


@app.command("folders")
def folders(
    project_key: str = typer.Argument(..., help="Jira project key"),
    path: str = typer.Option("/", help="Folder path in the test repository"),
):
    """
    Show a folder of the Xray test repository.
    """

    async def fetch(engine: XrayIntegrationEngine):
        project_id = await engine.resolve_project_id(project_key)
        return await engine.get_folder(project_id, path)

    folder = _run_engine(fetch)
    console.print(f"Folder {folder.path} ({folder.tests_count or 0} tests)")
    for child in folder.folders:
        name = child.get("path") or child.get("name") if isinstance(child, dict) else child
        console.print(f"  {name}")


@app.command("diff")
def diff(
    original_file: Path = typer.Argument(..., help="JSON file with the stored link selection"),
    current_file: Path = typer.Argument(..., help="JSON file with the edited link selection"),
):
    """
    Show the link changes between two selections without applying them.
    """
    link_diff = compute_diff(_load_selection(original_file), _load_selection(current_file))
    console.print_json(link_diff.model_dump_json(by_alias=True))


@app.command("reconcile")
def reconcile(
    test_issue_id: str = typer.Argument(..., help="Jira issue ID of the test"),
    original_file: Path = typer.Argument(..., help="JSON file with the stored link selection"),
    current_file: Path = typer.Argument(..., help="JSON file with the edited link selection"),
    project_id: str | None = typer.Option(None, help="Xray project ID for folder moves"),
    project_key: str | None = typer.Option(None, help="Jira project key used to look up the project ID"),
):
    """
    Apply the link changes between two selections to a test.
    """
    current = _load_selection(current_file)
    link_diff = compute_diff(_load_selection(original_file), current)
    if link_diff.is_empty:
        console.print("No link changes")
        return

    result = _run_engine(
        lambda engine: engine.reconcile(
            test_issue_id,
            link_diff,
            project_id=project_id or current.project_id,
            project_key=project_key,
        )
    )
    _print_reconciliation(result)


@app.command("link")
def link(
    test_issue_id: str = typer.Argument(..., help="Jira issue ID of the test"),
    selection_file: Path = typer.Argument(..., help="JSON file with the link selection"),
    project_key: str | None = typer.Option(None, help="Jira project key used to look up the project ID"),
):
    """
    Link a newly imported test to everything in a selection.
    """
    selection = _load_selection(selection_file)
    result = _run_engine(lambda engine: engine.link(test_issue_id, selection, project_key=project_key))
    _print_reconciliation(result)


if __name__ == "__main__":
    app()
