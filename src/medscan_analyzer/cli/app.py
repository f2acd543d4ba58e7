"""
Command-line interface using Typer and Rich.

Provides:
- Document analysis, either in-process or through the analysis server
- Provider listing and configuration display (credentials are never shown)
- Server start-up
"""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path
from typing import Annotated, Optional

import typer
from pydantic import ValidationError as PydanticValidationError
from rich import box
from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TaskProgressColumn,
    TextColumn,
    TimeElapsedColumn,
)
from rich.table import Table
from rich.text import Text

from ..core.config import settings
from ..core.exceptions import AnalyzerError
from ..core.logging import get_logger
from ..domain.models import PROVIDER_CATALOGUE, AnalysisRequest, ProviderId, RawFile

app = typer.Typer(
    name="medscan",
    help="MedScan Analyzer - AI-assisted analysis of medical documents",
    add_completion=True,
    rich_markup_mode="rich",
)
console = Console()
logger = get_logger(__name__)


def print_report(report: str, provider: ProviderId) -> None:
    """Render a Markdown report in a panel."""
    console.print("\n")
    console.print(
        Panel(
            Markdown(report) if report.strip() else Text("(empty report)", style="dim"),
            title=f"Analysis Report ({PROVIDER_CATALOGUE[provider].name})",
            border_style="blue",
            expand=True,
        )
    )


def _build_request(
    files: list[Path],
    name: str,
    age: str,
    notes: str | None,
) -> AnalysisRequest:
    try:
        return AnalysisRequest(
            subject_name=name,
            subject_age=age,
            notes=notes,
            files=tuple(RawFile.from_path(path) for path in files),
        )
    except PydanticValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
        )
        console.print(f"\n❌ [red]Invalid request:[/red] {problems}")
        raise typer.Exit(2) from None


@app.command()
def analyze(
    files: Annotated[
        list[Path],
        typer.Argument(
            help="Medical documents (images or PDFs), 1 to 5 files",
            exists=True,
            file_okay=True,
            dir_okay=False,
            readable=True,
        ),
    ],
    name: Annotated[str, typer.Option("--name", "-n", help="Patient name")],
    age: Annotated[str, typer.Option("--age", "-a", help="Patient age")],
    provider: Annotated[
        ProviderId,
        typer.Option("--provider", "-p", help="Model provider"),
    ] = ProviderId.OPENAI,
    notes: Annotated[
        Optional[str],
        typer.Option("--notes", help="Additional clinical notes"),
    ] = None,
    server: Annotated[
        Optional[str],
        typer.Option(
            "--server",
            "-s",
            help="Send to an analysis server at this API base URL instead of calling providers directly",
        ),
    ] = None,
    output: Annotated[
        Optional[Path],
        typer.Option("--output", "-o", help="Write the Markdown report to this file"),
    ] = None,
) -> None:
    """
    Analyze medical documents and print the generated report.

    Without --server the pipeline runs in this process using the provider
    keys from the environment. With --server the files are encoded locally
    and sent to the server, which holds the keys.
    """
    request = _build_request(files, name, age, notes)

    console.print(f"\n[cyan]📄 Files:[/cyan] {', '.join(f.name for f in request.files)}")
    console.print(f"[cyan]🤖 Provider:[/cyan] {PROVIDER_CATALOGUE[provider].name}")
    console.print(f"[cyan]🌐 Mode:[/cyan] {'server ' + server if server else 'local'}\n")

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TaskProgressColumn(),
        TimeElapsedColumn(),
        console=console,
    ) as progress:
        task = progress.add_task("[cyan]Analyzing documents...", total=None)

        def on_progress(file_name: str, percent: int) -> None:
            progress.update(task, description=f"[cyan]Encoding {file_name}: {percent}%")

        try:
            if server:
                report = _analyze_via_server(server, provider, request, on_progress)
            else:
                report = _analyze_locally(provider, request, on_progress)
        except AnalyzerError as e:
            progress.stop()
            console.print(f"\n❌ [red]Analysis failed ({e.kind.value}):[/red] {e.caller_message()}")
            logger.error("analysis_failed", kind=e.kind.value, error=str(e))
            raise typer.Exit(1) from None

        progress.update(task, completed=True)

    console.print("✅ [green]Analysis completed successfully![/green]")
    print_report(report, provider)

    if output:
        output.write_text(report, encoding="utf-8")
        console.print(f"\n💾 [green]Report saved to:[/green] {output}")


def _analyze_locally(provider: ProviderId, request: AnalysisRequest, on_progress) -> str:
    from ..services.analysis import AnalysisService

    service = AnalysisService(settings)
    result = asyncio.run(service.analyze(provider, request, on_progress))
    if result.error is not None:
        console.print(f"\n❌ [red]Analysis failed ({result.error.kind.value}):[/red] {result.error.message}")
        raise typer.Exit(1)
    return result.report_text or ""


def _analyze_via_server(base_url: str, provider: ProviderId, request: AnalysisRequest, on_progress) -> str:
    from ..client.api import BoundaryClient
    from ..services.encoder import ChunkedEncoder

    client = BoundaryClient(
        base_url,
        encoder=ChunkedEncoder.from_settings(settings),
        max_total_bytes=settings.max_total_file_size_bytes,
        timeout_seconds=settings.provider_timeout_seconds + 30,
    )
    encoded = asyncio.run(client.encode(request, on_progress))
    return client.submit(provider, encoded)


@app.command()
def providers() -> None:
    """List supported model providers."""
    table = Table(
        title="🤖 Model Providers",
        box=box.ROUNDED,
        show_header=True,
        header_style="bold cyan",
        border_style="cyan",
    )
    table.add_column("ID", style="yellow")
    table.add_column("Name", style="magenta")
    table.add_column("Model", style="green")
    table.add_column("Configured", justify="center")
    table.add_column("Description", style="white", no_wrap=False)

    models = {ProviderId.OPENAI: settings.openai_model, ProviderId.GEMINI: settings.gemini_model}
    for provider_id, info in PROVIDER_CATALOGUE.items():
        configured = settings.credential_for(provider_id) is not None
        table.add_row(
            provider_id.value,
            info.name,
            models[provider_id],
            "✅" if configured else "❌",
            info.description,
        )

    console.print(table)


@app.command()
def version() -> None:
    """Display version information."""
    version_text = Text()
    version_text.append(f"{settings.app_name}\n", style="bold blue")
    version_text.append(f"Version: {settings.app_version}\n", style="green")
    version_text.append(f"Environment: {settings.environment}\n", style="yellow")

    console.print(Panel(version_text, border_style="blue"))


@app.command()
def config() -> None:
    """Display current configuration."""
    config_table = Table(
        title="⚙️  Current Configuration",
        box=box.ROUNDED,
        show_header=True,
        header_style="bold cyan",
    )
    config_table.add_column("Setting", style="yellow")
    config_table.add_column("Value", style="green")

    def key_state(provider: ProviderId) -> str:
        return "configured" if settings.credential_for(provider) is not None else "missing"

    config_items = [
        ("Environment", settings.environment),
        ("Log Level", settings.log_level),
        ("OpenAI Model", settings.openai_model),
        ("OpenAI API Key", key_state(ProviderId.OPENAI)),
        ("Gemini Model", settings.gemini_model),
        ("Gemini API Key", key_state(ProviderId.GEMINI)),
        ("Max Total File Size", f"{settings.max_total_file_size_mb} MB"),
        ("Chunked Encoding From", f"{settings.small_file_threshold_mb} MB"),
        ("Encode Timeout", f"{settings.encode_timeout_seconds:g} s"),
        ("Provider Timeout", f"{settings.provider_timeout_seconds} s"),
        ("Provider Attempts", str(settings.provider_max_attempts)),
        ("API Base URL", settings.api_base_url),
    ]

    for key, value in config_items:
        config_table.add_row(key, str(value))

    console.print(config_table)


@app.command()
def server(
    host: Annotated[
        Optional[str],
        typer.Option(help="Host to bind the server to"),
    ] = None,
    port: Annotated[
        Optional[int],
        typer.Option(help="Port to bind the server to"),
    ] = None,
    reload: Annotated[
        bool,
        typer.Option(help="Enable auto-reload on code changes"),
    ] = False,
) -> None:
    """
    Start the analysis server.

    Provider keys are read from the environment once, at start-up.
    """
    import uvicorn

    host = host or settings.app_host
    port = port or settings.app_port

    console.print("\n🚀 [green]Starting analysis server...[/green]")
    console.print(f"[cyan]📍 URL:[/cyan] http://{host}:{port}")
    console.print(f"[cyan]📖 API Docs:[/cyan] http://{host}:{port}/docs\n")

    try:
        uvicorn.run(
            "medscan_analyzer.web.app:app",
            host=host,
            port=port,
            reload=reload,
            log_level=settings.log_level.lower(),
        )
    except KeyboardInterrupt:
        console.print("\n[yellow]Server stopped by user[/yellow]")


def main() -> None:
    """Main entry point for CLI."""
    try:
        app()
    except KeyboardInterrupt:
        console.print("\n[yellow]Operation cancelled by user[/yellow]")
        sys.exit(0)


if __name__ == "__main__":
    main()
