"""Diff Reviewer command line interface."""

import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from diff_reviewer import __version__
from diff_reviewer.analyzers import build_patch, parse_patch_file, prepare_files, split_files
from diff_reviewer.exceptions import DiffReviewerError
from diff_reviewer.models import DiffFile, DiffHunk, HunkStatus, LineType
from diff_reviewer.session import ReviewSession
from diff_reviewer.settings import Settings, load_settings


console = Console()

STATUS_STYLES = {
    HunkStatus.PENDING: "yellow",
    HunkStatus.APPROVED: "green",
    HunkStatus.REJECTED: "red",
}


@click.group()
@click.version_option(__version__)
@click.option("--repo", "-r", default=None, help="Repository to review (default: current directory)")
@click.option("--config", "-c", type=click.Path(exists=True), help="YAML config file")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.pass_context
def main(ctx: click.Context, repo: Optional[str], config: Optional[str], verbose: bool):
    """Diff Reviewer: accept or reject uncommitted changes hunk by hunk."""
    settings = load_settings(config, repo_path=repo, log_level="DEBUG" if verbose else None)
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
    )
    ctx.obj = settings


def _run(settings: Settings, action):
    """Run ``action(session)`` against a freshly loaded diff, exiting 1 on errors."""

    async def runner():
        session = ReviewSession.from_settings(settings)
        await session.refresh()
        return await action(session)

    try:
        return asyncio.run(runner())
    except DiffReviewerError as e:
        console.print(f"[red]Error: {e}[/]")
        raise SystemExit(1)


@main.command()
@click.pass_obj
def files(settings: Settings):
    """List changed files and their review progress."""

    async def action(session: ReviewSession):
        return session.summary()

    summaries = _run(settings, action)
    if not summaries:
        console.print("[green]✓ No uncommitted changes.[/]")
        return

    table = Table(title=f"{len(summaries)} changed file(s)")
    table.add_column("File")
    table.add_column("Pending", justify="right")
    table.add_column("Approved", justify="right")
    table.add_column("State")

    for s in summaries:
        if s.is_binary:
            state = "[dim]binary[/]"
        elif s.resolved:
            state = "[green]✓ resolved[/]"
        else:
            state = ""
        table.add_row(s.path, str(s.pending), str(s.approved), state)

    console.print(table)


@main.command()
@click.argument("path")
@click.pass_obj
def show(settings: Settings, path: str):
    """Show the hunks of PATH with their statuses."""

    async def action(session: ReviewSession):
        return await session.open_file(path)

    view = _run(settings, action)
    if view is None:
        console.print(f"[red]Error: File not in diff: {path}[/]")
        raise SystemExit(1)
    if view.file.is_binary:
        console.print(f"[dim]{path}: binary file, nothing to review[/]")
        return

    for index, (hunk, status) in enumerate(zip(view.file.hunks, view.statuses)):
        _print_hunk(index, hunk, status)


@main.command()
@click.argument("path")
@click.argument("indexes", nargs=-1, type=int, required=True)
@click.pass_obj
def approve(settings: Settings, path: str, indexes: tuple[int, ...]):
    """Approve hunks of PATH by index."""

    async def action(session: ReviewSession):
        statuses = None
        for index in indexes:
            statuses = await session.approve(path, index)
        return statuses

    statuses = _run(settings, action)
    _print_statuses(path, statuses)


@main.command("approve-all")
@click.argument("path")
@click.pass_obj
def approve_all(settings: Settings, path: str):
    """Approve every pending hunk of PATH."""

    async def action(session: ReviewSession):
        return await session.approve_all(path)

    statuses = _run(settings, action)
    _print_statuses(path, statuses)


@main.command()
@click.argument("path")
@click.argument("index", type=int)
@click.pass_obj
def unapprove(settings: Settings, path: str, index: int):
    """Reset an approved hunk of PATH to pending."""

    async def action(session: ReviewSession):
        return await session.unapprove(path, index)

    statuses = _run(settings, action)
    _print_statuses(path, statuses)


@main.command()
@click.argument("path")
@click.argument("index", type=int)
@click.pass_obj
def reject(settings: Settings, path: str, index: int):
    """Reject a hunk of PATH, removing it from the working tree."""

    async def action(session: ReviewSession):
        file = session.find_file(path)
        if file is None or not 0 <= index < len(file.hunks):
            return False, None
        return True, await session.reject(path, index)

    found, updated = _run(settings, action)
    if not found:
        console.print(f"[red]Error: No hunk {index} in {path}[/]")
        raise SystemExit(1)
    _print_remaining(path, updated)


@main.command("reject-all")
@click.argument("path")
@click.pass_obj
def reject_all(settings: Settings, path: str):
    """Reject every pending hunk of PATH."""

    async def action(session: ReviewSession):
        if session.find_file(path) is None:
            return False, None
        return True, await session.reject_all(path)

    found, updated = _run(settings, action)
    if not found:
        console.print(f"[red]Error: File not in diff: {path}[/]")
        raise SystemExit(1)
    _print_remaining(path, updated)


@main.command()
@click.pass_obj
def undo(settings: Settings):
    """Undo the most recent approve or reject, including one from an earlier run."""

    async def action(session: ReviewSession):
        return await session.undo()

    result = _run(settings, action)
    if result is None:
        console.print("[yellow]Nothing to undo.[/]")
        return
    console.print(f"Undid {result.undone_type.value} in {result.file_path}")


@main.command()
@click.argument("path")
@click.argument("index", type=int)
@click.pass_obj
def patch(settings: Settings, path: str, index: int):
    """Print the stand-alone patch for one hunk of PATH."""

    async def action(session: ReviewSession):
        return session.find_file(path)

    file = _run(settings, action)
    if file is None or not 0 <= index < len(file.hunks):
        console.print(f"[red]Error: No hunk {index} in {path}[/]")
        raise SystemExit(1)
    # Raw bytes so non-UTF-8 content comes out exactly as git produced it
    click.echo(build_patch(file, file.hunks[index]).encode("utf-8", errors="surrogateescape"), nl=False)


@main.command()
@click.argument("target", required=False)
@click.option("--format", "-f", "output_format", default="rich",
              type=click.Choice(["rich", "json"]))
def parse(target: Optional[str], output_format: str):
    """Parse a diff without a repository.

    TARGET can be a patch file or '-' for stdin.

    Examples:

        git diff HEAD | diff-reviewer parse -

        diff-reviewer parse changes.patch --format json
    """
    if target == "-" or target is None:
        if sys.stdin.isatty():
            console.print("[yellow]Reading from stdin... (pipe a diff or Ctrl+D to finish)[/]")
        parsed = prepare_files(sys.stdin.read())
    else:
        if not Path(target).exists():
            console.print(f"[red]Error: File not found: {target}[/]")
            raise SystemExit(1)
        parsed = split_files(parse_patch_file(target))

    if output_format == "json":
        data = [f.model_dump(mode="json") for f in parsed]
        console.print_json(json.dumps(data, indent=2))
        return

    if not parsed:
        console.print("[yellow]No files in diff.[/]")
        return
    for file in parsed:
        _print_file(file)


@main.command()
@click.pass_obj
def review(settings: Settings):
    """Interactively review all pending hunks."""
    try:
        asyncio.run(_interactive_review(ReviewSession.from_settings(settings)))
    except DiffReviewerError as e:
        console.print(f"[red]Error: {e}[/]")
        raise SystemExit(1)


async def _interactive_review(session: ReviewSession):
    """Walk pending hunks: a=approve, r=reject, u=undo, s=skip file, q=quit."""
    await session.refresh()
    skipped: set[str] = set()

    while True:
        target = _next_pending(session, skipped)
        if target is None:
            console.print("[green]✓ Nothing left to review.[/]")
            return

        file, index = target
        statuses = session.state.get_status_array(file)
        console.rule(f"[bold]{escape(file.path)}[/]")
        _print_hunk(index, file.hunks[index], statuses[index])

        choice = click.prompt(
            "Action [a=approve, r=reject, u=undo, s=skip file, q=quit]",
            type=click.Choice(["a", "r", "u", "s", "q"]),
            show_choices=False,
        )
        if choice == "q":
            return
        if choice == "s":
            skipped.add(file.path)
        elif choice == "a":
            await session.approve(file.path, index)
        elif choice == "r":
            try:
                await session.reject(file.path, index)
            except DiffReviewerError as e:
                console.print(f"[red]Reject failed: {e}[/]")
                await session.refresh()
        elif choice == "u":
            try:
                result = await session.undo()
            except DiffReviewerError as e:
                console.print(f"[red]Undo failed: {e}[/]")
                continue
            if result is None:
                console.print("[yellow]Nothing to undo.[/]")
            else:
                skipped.discard(result.file_path)
                console.print(f"[dim]Undid {result.undone_type.value} in {result.file_path}[/]")


def _next_pending(session: ReviewSession, skipped: set[str]) -> Optional[tuple[DiffFile, int]]:
    for file in session.get_files():
        if file.is_binary or file.path in skipped:
            continue
        statuses = session.state.get_status_array(file)
        for index, status in enumerate(statuses):
            if status == HunkStatus.PENDING:
                return file, index
    return None


@main.command()
@click.option("--host", "-h", default=None, help="Host to bind to")
@click.option("--port", "-p", default=None, type=int, help="Port to listen on")
@click.pass_obj
def serve(settings: Settings, host: Optional[str], port: Optional[int]):
    """Start the review API server."""
    import uvicorn
    from diff_reviewer.server.app import create_app

    app = create_app(settings=settings)
    host = host or settings.host
    port = port or settings.port
    console.print(f"[green]Starting Diff Reviewer server on {host}:{port}[/]")
    uvicorn.run(app, host=host, port=port)


def _print_file(file: DiffFile):
    console.print(f"[bold]{escape(file.path)}[/]")
    if file.is_binary:
        console.print("  [dim]binary file[/]")
        return
    for index, hunk in enumerate(file.hunks):
        _print_hunk(index, hunk)


def _print_hunk(index: int, hunk: DiffHunk, status: Optional[HunkStatus] = None):
    """Print a hunk with coloured changed lines."""
    title = f"[bold]#{index}[/] [cyan]{escape(hunk.header)}[/] [dim]{hunk.id or ''}[/]"
    if status is not None:
        title += f" [{STATUS_STYLES[status]}]{status.value}[/]"
    console.print(title, highlight=False)

    for line in hunk.lines:
        content = _printable(line.content)
        if line.type == LineType.ADD:
            console.print(f"+{content}", style="green", markup=False, highlight=False)
        elif line.type == LineType.REMOVE:
            console.print(f"-{content}", style="red", markup=False, highlight=False)
        else:
            console.print(f" {content}", style="dim", markup=False, highlight=False)
    console.print()


def _printable(text: str) -> str:
    """Undecodable bytes from git as U+FFFD, so the terminal can encode them."""
    return text.encode("utf-8", errors="surrogateescape").decode("utf-8", errors="replace")


def _print_statuses(path: str, statuses: Optional[list[HunkStatus]]):
    if statuses is None:
        console.print(f"[red]Error: No such file or hunk in diff: {path}[/]")
        raise SystemExit(1)
    summary = ", ".join(
        f"[{STATUS_STYLES[s]}]#{i} {s.value}[/]" for i, s in enumerate(statuses)
    )
    console.print(f"{path}: {summary}")


def _print_remaining(path: str, updated: Optional[DiffFile]):
    if updated is None:
        console.print(f"[green]✓ {path} has no remaining changes.[/]")
    else:
        console.print(f"{path}: {len(updated.hunks)} hunk(s) remaining")


if __name__ == "__main__":
    main()
