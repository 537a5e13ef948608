"""
cli — Command-line front ends (Typer + Rich).

    trackshape-split [FILEEXT]   sort files into folders named after their track layout
    trackshape-remux [FILEEXT]   remux a batch with one shared MKVToolNix option file

Both are also available as `trackshape split` / `trackshape remux`.
"""
from __future__ import annotations
from contextlib import contextmanager
from pathlib import Path
from typing import Optional

import structlog
import typer
from rich.console import Console
from rich.prompt import Prompt
from rich.table import Table

from .config import Config, load_config
from .discovery import normalize_extension
from .errors import ConfigError, MetadataMismatch, TemplateError, TrackshapeError
from .executor import RemuxPlan, RunContext, SplitPlan, run_remux, run_split
from .facilities import build_toolbox, require_tools
from .logging_setup import setup_logging
from .paths import get_dirs
from .signature import describe
from .template import declared_extension, load_template

log = structlog.get_logger()

console = Console(highlight=False)

EXIT_INTERRUPTED = 130
CONTEXT = {"help_option_names": ["-h", "--help"]}

app = typer.Typer(no_args_is_help=True, add_completion=False, context_settings=CONTEXT)
split_app = typer.Typer(add_completion=False, context_settings=CONTEXT)
remux_app = typer.Typer(add_completion=False, context_settings=CONTEXT)


# ---------------------------------------------------------------------------
# Shared plumbing
# ---------------------------------------------------------------------------

@contextmanager
def _handle_errors():
    try:
        yield
    except MetadataMismatch as e:
        m = e.mismatch
        console.print(f"[red]Track layout mismatch[/red] at file {m.position}: [bold]{m.record.name}[/bold]")
        console.print(f"  expected [cyan]{m.baseline}[/cyan], found [yellow]{m.found}[/yellow]"
                      f" [dim]({describe(m.record.signature)})[/dim]")
        log.error("consistency_failed", file=str(m.record.path), position=m.position)
        raise typer.Exit(e.exit_code)
    except TrackshapeError as e:
        console.print(f"[red]Error:[/red] {e}")
        log.error("run_failed", error=str(e), kind=type(e).__name__)
        raise typer.Exit(e.exit_code)
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted. Completed files were kept; re-run to resume.[/yellow]")
        raise typer.Exit(EXIT_INTERRUPTED)


def _setup() -> Config:
    cfg = load_config()
    try:
        setup_logging(cfg.log_level)
    except OSError as e:
        raise ConfigError("log file", str(e)) from e
    return cfg


def _print_progress(index: int, total: int, path: Path, action: str) -> None:
    if action == "identify":
        console.print(f"[dim]{index}/{total} identify {path.name}[/dim]")
    else:
        console.print(f"[cyan]{index}/{total}[/cyan] {action} [bold]{path.name}[/bold]")


def _confirmer(ctx: typer.Context, assume_yes: bool):
    def ask(question: str) -> bool:
        if assume_yes:
            return True
        while True:
            choice = Prompt.ask(
                f"[bold]{question}[/bold] [dim](y = yes, n = no, h = show usage)[/dim]",
                choices=["y", "n", "h"], default="n", show_choices=False, console=console,
            )
            if choice == "h":
                console.print(ctx.get_help())
                continue
            return choice == "y"
    return ask


def _show_split_plan(plan: SplitPlan) -> None:
    t = Table(title=f"{plan.summary.files} file(s) in {plan.summary.groups} track layout(s)")
    t.add_column("Group"); t.add_column("Files", justify="right"); t.add_column("Tracks")
    for fp, records in plan.groups.items():
        t.add_row(fp, str(len(records)), describe(records[0].signature))
    console.print(t)


def _show_remux_plan(plan: RemuxPlan) -> None:
    if plan.verdict:
        console.print(f"[green]All {plan.verdict.checked} file(s) share track layout[/green] "
                      f"[cyan]{plan.verdict.fingerprint}[/cyan]")
    if plan.template is not None:
        console.print(f"[dim]Shared options ({len(plan.template)} token(s)): "
                      f"{' '.join(plan.template) or '(none)'}[/dim]")
    else:
        console.print("[dim]No options template; files are remuxed as-is.[/dim]")


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------

def split(
    ctx: typer.Context,
    fileext: Optional[str] = typer.Argument(None, help="Extension of the files to sort (default: mkv)."),
    scanonly: bool = typer.Option(False, "--scanonly", "-s", help="Only list the track layouts found."),
    check: bool = typer.Option(False, "--check", "-c", help="Fail with exit code 2 unless all files share one layout."),
    move: bool = typer.Option(False, "--move", "-m", help="Move files instead of copying them."),
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation."),
    directory: Path = typer.Option(Path("."), "--dir", "-d", exists=True, file_okay=False, help="Folder to process."),
):
    """Sort media files into folders named after the fingerprint of their track layout."""
    with _handle_errors():
        cfg = _setup()
        run_ctx = RunContext(
            root=directory.resolve(),
            extension=normalize_extension(fileext or cfg.default_extension),
            config=cfg,
            toolbox=build_toolbox(cfg),
            progress=_print_progress,
            confirm=_confirmer(ctx, yes),
            report=_show_split_plan,
        )
        require_tools([cfg.mkvmerge] if scanonly else [cfg.mkvmerge, cfg.rsync])
        result = run_split(run_ctx, scan_only=scanonly, check=check, move=move)

    if result.acted:
        console.print(f"[green]Done.[/green] {len(result.outputs)} file(s) sorted.")
    elif not scanonly:
        console.print("[yellow]Nothing changed.[/yellow]")


def remux(
    ctx: typer.Context,
    fileext: Optional[str] = typer.Argument(None, help="Extension of the files to remux (default: mkv, or the template's output type)."),
    scan_headers: bool = typer.Option(False, "--scan-headers", "-s", help="Only check that all files share one track layout."),
    strip_titles: bool = typer.Option(False, "--strip-titles", "-t", help="Delete the title field from every output."),
    set_titles: bool = typer.Option(False, "--set-titles", help="Set each output's title to its file name."),
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation."),
    directory: Path = typer.Option(Path("."), "--dir", "-d", exists=True, file_okay=False, help="Folder to process."),
    template_path: Optional[Path] = typer.Option(None, "--template", help="MKVToolNix JSON option file (default: options.json in the folder)."),
):
    """Remux every file with the same options, after checking they share one track layout."""
    if strip_titles and set_titles:
        raise typer.BadParameter("--strip-titles and --set-titles cannot be combined")
    root = directory.resolve()

    with _handle_errors():
        cfg = _setup()
        needed = [cfg.mkvmerge]
        if strip_titles and not scan_headers:
            needed.append(cfg.mkvpropedit)
        require_tools(needed)

        template = None
        tpl = template_path or root / cfg.template_name
        if tpl.exists():
            template = load_template(tpl)
            console.print(f"[dim]Using options template {tpl.name}[/dim]")
        elif template_path:
            raise TemplateError(template_path, "file not found")

        extension = fileext or (declared_extension(template) if template else None) or cfg.default_extension
        run_ctx = RunContext(
            root=root,
            extension=normalize_extension(extension),
            config=cfg,
            toolbox=build_toolbox(cfg),
            progress=_print_progress,
            confirm=_confirmer(ctx, yes),
            report=_show_remux_plan,
        )
        result = run_remux(run_ctx, template, scan_only=scan_headers,
                           strip_titles=strip_titles, set_titles=set_titles)

    if result.acted:
        console.print(f"[green]Done.[/green] {len(result.outputs)} file(s) written to {result.plan.out_dir}.")
    elif not scan_headers:
        console.print("[yellow]Nothing changed.[/yellow]")


def show_paths():
    """Show where trackshape keeps its log file and per-user config."""
    with _handle_errors():
        _setup()
    t = Table(title="trackshape paths")
    t.add_column("Kind"); t.add_column("Location")
    for k, p in get_dirs().items():
        t.add_row(k, str(p))
    console.print(t)


app.command("split", context_settings=CONTEXT)(split)
app.command("remux", context_settings=CONTEXT)(remux)
app.command("paths", context_settings=CONTEXT)(show_paths)
split_app.command(context_settings=CONTEXT)(split)
remux_app.command(context_settings=CONTEXT)(remux)
