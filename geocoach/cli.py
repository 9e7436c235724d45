"""Typer CLI application for the GEO/AEO Copy Coach.

Provides commands for the API server, homepage audits, audit history and
export, and the two AI search visibility tools.
"""

import asyncio
import logging
from pathlib import Path
from typing import Any, Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from geocoach.errors import GeoCoachError

console = Console()
app = typer.Typer(
    name="geocoach",
    help="GEO/AEO Copy Coach -- homepage audits and AI search visibility checks.",
    add_completion=False,
    no_args_is_help=True,
)


def _setup_logging(verbose: bool = False, level_name: str = "INFO") -> None:
    """Configure logging level and format."""
    level = logging.DEBUG if verbose else getattr(logging, level_name.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def _run_async(coro):
    """Run an async coroutine from synchronous CLI context."""
    return asyncio.run(coro)


def _get_coach(verbose: bool = False, config_path: str = "config/settings.yaml"):
    """Load config, set up logging, and initialise a GeoCoach.

    Exits with status 1 on configuration errors.
    """
    from geocoach.app import GeoCoach
    from geocoach.config import load_config

    config = load_config(config_path)
    _setup_logging(verbose, config.log_level)
    coach = GeoCoach(config=config)
    try:
        coach.initialize()
    except GeoCoachError as exc:
        console.print("[red]✘[/red] " + str(exc))
        raise typer.Exit(code=1)
    return coach


def _fail(exc: Exception) -> None:
    console.print("[red]✘[/red] " + str(exc))
    raise typer.Exit(code=1)


def _print_audit(audit: dict[str, Any]) -> None:
    """Pretty-print one stored audit using Rich."""
    scores = Table(title="Scores: " + audit["url"], show_header=True, header_style="bold magenta")
    for column in ("Who", "What", "Where", "Entity"):
        scores.add_column(column, justify="right")
    scores.add_row(
        str(audit["score_who"]), str(audit["score_what"]),
        str(audit["score_where"]), str(audit["entity_score"]),
    )
    console.print(scores)

    if audit.get("summary"):
        console.print(Panel(audit["summary"], title="Summary"))

    recs = Table(title="Recommended Literal Sentences", show_header=True, header_style="bold magenta")
    recs.add_column("P", justify="right", style="cyan")
    recs.add_column("Kind", style="cyan")
    recs.add_column("Sentence", max_width=80)
    for rec in audit.get("recommendations", []):
        recs.add_row(str(rec["priority"]), rec["kind"], rec["sentence"])
    console.print(recs)

    for issue in audit.get("issues", []):
        console.print("[yellow]⚠[/yellow] " + issue)
    console.print("Audit id: [bold]" + audit["id"] + "[/bold]")


def _search_meta(meta: Optional[dict[str, Any]]) -> str:
    meta = meta or {}
    parts = []
    if meta.get("total_results"):
        parts.append(f"~{meta['total_results']} results")
    if meta.get("time_taken"):
        parts.append(f"{meta['time_taken']}s")
    return "[dim]" + " · ".join(parts) + "[/dim]" if parts else ""


def _overview_text(overview: dict[str, Any]) -> str:
    """AI overview blocks rendered by type, then its references."""
    if overview.get("error"):
        return "[red]AI Overview error:[/red] " + escape(str(overview["error"]))

    lines = []
    if overview.get("thumbnail"):
        lines.append("[dim]Thumbnail:[/dim] " + escape(overview["thumbnail"]))
    blocks = overview.get("text_blocks") or []
    for block in blocks:
        kind = block.get("type")
        if kind == "heading":
            lines.append("[bold]" + escape(block.get("snippet") or "No heading available") + "[/bold]")
        elif kind == "paragraph":
            lines.append(escape(block.get("snippet") or "No content available"))
        elif kind == "list":
            items = block.get("list") or []
            if not items:
                lines.append("[dim]No list items available[/dim]")
            for item in items:
                lines.append(
                    "• [cyan]" + escape(item.get("title") or "Item") + "[/cyan] "
                    + escape(item.get("snippet") or "No description available")
                )
        elif kind:
            lines.append("[dim]Unknown block type: " + escape(kind) + "[/dim]")
    if not blocks:
        lines.append("[dim]No content available in AI Overview[/dim]")

    references = overview.get("references") or []
    if references:
        lines.extend(["", "[bold]References[/bold]"])
        for ref in references:
            link = ref.get("link") or ""
            lines.append("- " + escape(ref.get("title") or link) + " (" + escape(link) + ")")
            if ref.get("snippet"):
                lines.append("  " + escape(ref["snippet"]))
    return "\n".join(lines)


def _answer_box_text(answer_box: dict[str, Any]) -> str:
    """Description, result, business hours, and the answer box type."""
    lines = []
    if answer_box.get("description"):
        lines.append("[bold]" + escape(str(answer_box["description"])) + "[/bold]")
    if answer_box.get("result"):
        lines.append(escape(str(answer_box["result"])))
    hours_list = answer_box.get("hours_list") or []
    if hours_list:
        lines.extend(["", "[bold]Business Hours[/bold]"])
        for group in hours_list:
            if group.get("title"):
                lines.append(escape(group["title"]))
            for item in group.get("items") or []:
                lines.append("  " + escape(item.get("day", "")) + ": " + escape(item.get("hours", "")))
    if answer_box.get("type") and answer_box["type"] != "hours":
        lines.append("[dim]Answer Box Type: " + escape(answer_box["type"]) + "[/dim]")
    return "\n".join(lines) or "[dim]Empty answer box[/dim]"


def _print_visibility(queries: list[str], results: dict[int, dict[str, Any]], provider: str) -> None:
    """One panel per query index, error or result."""
    for index, query in enumerate(queries):
        result = results.get(index)
        title = escape(f"{index + 1}. {query}")
        if result is None:
            console.print(Panel("[dim]No result[/dim]", title=title))
        elif "error" in result:
            console.print(Panel("[red]" + escape(result["error"]) + "[/red]", title=title, border_style="red"))
        elif provider == "perplexity":
            lines = [escape(result.get("answer") or "No response received")]
            citations = result.get("citations") or []
            if citations:
                lines.extend(["", "[bold]Sources[/bold]"])
            for cite in citations:
                lines.append("- " + escape(cite.get("title") or cite["url"]) + " (" + escape(cite["url"]) + ")")
                if cite.get("text") and cite["text"] != cite["url"]:
                    lines.append("  " + escape(cite["text"]))
            console.print(Panel("\n".join(lines), title=title, border_style="green"))
        else:
            meta = _search_meta(result.get("search_metadata"))
            overview = result.get("ai_overview")
            answer_box = result.get("answer_box")
            if overview:
                body, label, style = _overview_text(overview), "AI Overview", "green"
            elif answer_box:
                body, label, style = _answer_box_text(answer_box), "Answer Box", "cyan"
            else:
                console.print(Panel("[dim]No AI Overview or Answer Box for this query[/dim]", title=title))
                continue
            if meta:
                body += "\n\n" + meta
            console.print(Panel(body, title=f"{title}  [{style}]{label}[/{style}]", border_style=style))


# ------------------------------------------------------------------
# serve
# ------------------------------------------------------------------
@app.command()
def serve(
    host: str = typer.Option("127.0.0.1", "--host", help="Bind address."),
    port: int = typer.Option(8000, "--port", "-p", help="HTTP port."),
    config: str = typer.Option("config/settings.yaml", "--config", "-c", help="Settings file."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
) -> None:
    """Run the HTTP API with uvicorn."""
    coach = _get_coach(verbose, config)
    import uvicorn
    from geocoach.api.server import create_app

    console.print("[bold cyan]Serving GEO Copy Coach on http://" + host + ":" + str(port) + "[/bold cyan]")
    uvicorn.run(create_app(coach), host=host, port=port, log_level="debug" if verbose else "info")


# ------------------------------------------------------------------
# audit
# ------------------------------------------------------------------
@app.command()
def audit(
    url: str = typer.Argument(..., help="Homepage URL to audit."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
) -> None:
    """Audit a homepage's local-business copy and store the result."""
    coach = _get_coach(verbose)
    console.print(Panel(f"[bold cyan]Copy Coach Audit: {url}[/bold cyan]"))

    error = None
    with Progress(SpinnerColumn(), TextColumn("[progress.description]{task.description}"), console=console) as progress:
        progress.add_task(description="Fetching and analysing page...", total=None)
        try:
            result = _run_async(coach.get_auditor().run_audit(url))
        except GeoCoachError as exc:
            error = exc

    if error is not None:
        _fail(error)
    _print_audit(result)
    console.print("[green]✔[/green] Audit complete.")


# ------------------------------------------------------------------
# history
# ------------------------------------------------------------------
@app.command()
def audits(
    limit: int = typer.Option(50, "--limit", "-n", help="Maximum rows to show."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
) -> None:
    """List recent audits, newest first."""
    _get_coach(verbose)
    from geocoach.modules.copy_coach import repository
    from geocoach.utils.validators import extract_domain

    rows = repository.list_audits(limit)
    table = Table(title="Recent Audits", show_header=True, header_style="bold magenta")
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Domain")
    table.add_column("Who", justify="right")
    table.add_column("What", justify="right")
    table.add_column("Where", justify="right")
    table.add_column("Entity", justify="right")
    table.add_column("Created")
    for row in rows:
        table.add_row(
            row["id"], extract_domain(row["url"]) or row["url"],
            str(row["score_who"]), str(row["score_what"]),
            str(row["score_where"]), str(row["entity_score"]),
            row["created_at"] or "",
        )
    console.print(table)
    if not rows:
        console.print("[dim]No audits yet. Run [bold]geocoach audit URL[/bold].[/dim]")


@app.command()
def show(
    audit_id: str = typer.Argument(..., help="Audit id."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
) -> None:
    """Show one stored audit with its recommendations."""
    _get_coach(verbose)
    from geocoach.modules.copy_coach import repository

    result = repository.get_audit(audit_id)
    if result is None:
        console.print("[red]✘[/red] Audit not found")
        raise typer.Exit(code=1)
    _print_audit(result)


@app.command()
def export(
    audit_id: str = typer.Argument(..., help="Audit id."),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write Markdown to this file."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
) -> None:
    """Export one stored audit as Markdown."""
    _get_coach(verbose)
    from geocoach.modules.copy_coach import repository
    from geocoach.modules.copy_coach.exporter import render_markdown

    result = repository.get_audit(audit_id)
    if result is None:
        console.print("[red]✘[/red] Audit not found")
        raise typer.Exit(code=1)
    markdown = render_markdown(result)
    if output is None:
        typer.echo(markdown)
        return
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(markdown, encoding="utf-8")
    console.print("[green]✔[/green] Exported to " + str(output))


@app.command()
def delete(
    audit_id: str = typer.Argument(..., help="Audit id."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
) -> None:
    """Delete an audit together with its recommendations and entities."""
    _get_coach(verbose)
    from geocoach.modules.copy_coach import repository

    if not repository.delete_audit(audit_id):
        console.print("[red]✘[/red] Audit not found")
        raise typer.Exit(code=1)
    console.print("[green]✔[/green] Deleted audit " + audit_id)


# ------------------------------------------------------------------
# visibility
# ------------------------------------------------------------------
@app.command()
def queries(
    subject: str = typer.Argument(..., help="Person or business to search for."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
) -> None:
    """Generate five realistic search queries about a subject."""
    coach = _get_coach(verbose)
    try:
        generated = _run_async(coach.get_query_generator().generate(subject))
    except GeoCoachError as exc:
        _fail(exc)
    for index, query in enumerate(generated, start=1):
        console.print(f"[cyan]{index}.[/cyan] " + escape(query))


def _visibility(provider: str, subject: str, verbose: bool) -> None:
    coach = _get_coach(verbose)
    session = coach.visibility_session(provider)

    async def _run():
        await session.generate_queries(subject)
        if session.error is None:
            await session.search_all()

    with Progress(SpinnerColumn(), TextColumn("[progress.description]{task.description}"), console=console) as progress:
        progress.add_task(description="Generating queries and searching...", total=None)
        _run_async(_run())

    if session.error and not session.results:
        console.print("[red]✘[/red] " + session.error)
        raise typer.Exit(code=1)
    _print_visibility(session.queries, session.results, provider)


@app.command()
def serp(
    subject: str = typer.Argument(..., help="Person or business to search for."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
) -> None:
    """Check Google AI Overview presence for five generated queries."""
    console.print(Panel(f"[bold cyan]AI Overview Visibility: {subject}[/bold cyan]"))
    _visibility("serp", subject, verbose)


@app.command()
def perplexity(
    subject: str = typer.Argument(..., help="Person or business to search for."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
) -> None:
    """Ask Perplexity five generated queries and show answers with citations."""
    console.print(Panel(f"[bold cyan]Perplexity Visibility: {subject}[/bold cyan]"))
    _visibility("perplexity", subject, verbose)


# ------------------------------------------------------------------
# dashboard
# ------------------------------------------------------------------
@app.command()
def dashboard(
    port: int = typer.Option(8501, "--port", "-p", help="Streamlit server port."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
) -> None:
    """Launch the Streamlit dashboard."""
    _setup_logging(verbose)
    console.print("[bold cyan]Launching dashboard on port " + str(port) + "...[/bold cyan]")
    import subprocess
    subprocess.run(
        ["streamlit", "run", "dashboard/app.py", "--server.port", str(port)],
        check=False,
    )


# ------------------------------------------------------------------
# init-db / status
# ------------------------------------------------------------------
@app.command("init-db")
def init_db(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
) -> None:
    """Create the database tables."""
    _setup_logging(verbose)
    from geocoach.config import load_config
    from geocoach.database import init_db as _init_db

    config = load_config()
    _init_db(database_url=config.database.url, echo=config.database.echo)
    console.print("[green]✔[/green] Database tables created.")


@app.command()
def status(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
) -> None:
    """Show configuration status: providers, database, auth."""
    _setup_logging(verbose)
    from geocoach.config import load_config

    config = load_config()
    missing = config.missing_secrets()
    table = Table(title="GEO Copy Coach Status", show_header=True, header_style="bold magenta")
    table.add_column("Component", style="cyan")
    table.add_column("Status")
    for env_name, label in (
        ("OPENAI_API_KEY", "LLM (OpenAI / Gemini)"),
        ("SERPAPI_API_KEY", "SerpAPI"),
        ("PERPLEXITY_API_KEY", "Perplexity"),
    ):
        if env_name in missing:
            table.add_row(label, "[yellow]⚠ " + env_name + " not set[/yellow]")
        else:
            table.add_row(label, "[green]✔ configured[/green]")
    table.add_row("Database", config.database.url.split("://", 1)[0])
    if config.auth.enabled:
        table.add_row("Auth", str(len(config.auth.session_tokens)) + " session token(s)")
    else:
        table.add_row("Auth", "[yellow]disabled[/yellow]")
    console.print(table)


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
