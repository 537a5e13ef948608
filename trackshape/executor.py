"""
executor — Runs a batch: discover → identify → classify/verify → act on each file.

Everything a run needs travels in RunContext; nothing is kept at module level.
Processing is strictly sequential. The first failure aborts the batch; files
already finished stay where they are, so re-running after a fix resumes the work.
"""
from __future__ import annotations
import signal
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Optional

import structlog

from .classify import FileRecord, GroupSummary, Mismatch, Ok, classify, summarize, verify
from .config import Config
from .discovery import discover, normalize_extension
from .errors import MetadataMismatch, OutputCollision, TrackshapeError
from .facilities import Toolbox
from .signature import extract
from .template import PER_FILE_FLAGS, declared_extension, sanitize, write_template

log = structlog.get_logger()

ProgressFn = Callable[[int, int, Path, str], None]


def _no_progress(index: int, total: int, path: Path, action: str) -> None:
    pass


def _always(prompt: str) -> bool:
    return True


@dataclass
class RunContext:
    root: Path
    extension: str
    config: Config
    toolbox: Toolbox
    progress: ProgressFn = _no_progress
    confirm: Callable[[str], bool] = _always
    report: Optional[Callable[[object], None]] = None


@dataclass
class SplitPlan:
    records: List[FileRecord]
    groups: dict[str, List[FileRecord]]
    summary: GroupSummary
    verdict: Optional[Ok] = None


@dataclass
class RemuxPlan:
    records: List[FileRecord]
    template: Optional[List[str]]  # sanitized
    out_dir: Path
    out_ext: Optional[str]
    verdict: Optional[Ok] = None


@dataclass
class BatchResult:
    plan: object
    acted: bool = False
    outputs: List[Path] = field(default_factory=list)


class ArtifactGuard:
    """
    Tracks files that must not outlive an aborted run (temporary option files,
    the output currently being written). Tracked paths are removed when the
    block exits; release() a path once it is complete. While active, SIGTERM
    is raised as KeyboardInterrupt so the same cleanup runs.
    """

    def __init__(self):
        self._paths: List[Path] = []
        self._prev_handler = None

    def track(self, path: Path) -> Path:
        self._paths.append(path)
        return path

    def release(self, path: Path) -> None:
        if path in self._paths:
            self._paths.remove(path)

    def cleanup(self) -> None:
        for p in self._paths:
            if p.exists():
                p.unlink()
                log.info("artifact_removed", path=str(p))
        self._paths.clear()

    def __enter__(self) -> "ArtifactGuard":
        if threading.current_thread() is threading.main_thread():
            self._prev_handler = signal.signal(signal.SIGTERM, _raise_interrupt)
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        try:
            if exc_type is KeyboardInterrupt:
                log.warning("batch_interrupted", pending=[str(p) for p in self._paths])
            self.cleanup()
        finally:
            if self._prev_handler is not None:
                signal.signal(signal.SIGTERM, self._prev_handler)
                self._prev_handler = None
        return False


def _raise_interrupt(signum, frame):
    raise KeyboardInterrupt


# ---------------------------------------------------------------------------
# Discover / identify
# ---------------------------------------------------------------------------

def make_records(ctx: RunContext) -> List[FileRecord]:
    paths = discover(ctx.root, ctx.extension)
    total = len(paths)

    def extractor_for(index: int):
        def _extract(path: Path):
            ctx.progress(index, total, path, "identify")
            return extract(path, ctx.toolbox.identifier)
        return _extract

    return [FileRecord(p, extractor_for(i)) for i, p in enumerate(paths, 1)]


def extract_all(records: List[FileRecord]) -> None:
    for rec in records:
        _ = rec.signature


def _gate(records: List[FileRecord]) -> Ok:
    verdict = verify(records)
    if isinstance(verdict, Mismatch):
        raise MetadataMismatch(verdict)
    log.info("batch_consistent", fingerprint=verdict.fingerprint, files=verdict.checked)
    return verdict


# ---------------------------------------------------------------------------
# Split tool
# ---------------------------------------------------------------------------

def plan_split(ctx: RunContext, check: bool = False) -> SplitPlan:
    records = make_records(ctx)
    extract_all(records)
    groups = classify(records)
    plan = SplitPlan(records=records, groups=groups, summary=summarize(groups))
    if ctx.report:
        ctx.report(plan)
    if check:
        plan.verdict = _gate(records)
    return plan


def route(ctx: RunContext, plan: SplitPlan, move: bool = False) -> List[Path]:
    action = "move" if move else "copy"
    total = len(plan.records)
    routed: List[Path] = []
    with ArtifactGuard():
        for i, rec in enumerate(plan.records, 1):
            ctx.progress(i, total, rec.path, action)
            dest_dir = ctx.root / rec.fingerprint
            routed.append(ctx.toolbox.transfer.transfer(rec.path, dest_dir, move=move))
            log.info("routed", file=rec.name, index=i, total=total, group=rec.fingerprint, mode=action)
    return routed


def run_split(ctx: RunContext, scan_only: bool = False, check: bool = False,
              move: bool = False) -> BatchResult:
    plan = plan_split(ctx, check=check)
    result = BatchResult(plan=plan)
    if scan_only:
        return result
    verb = "Move" if move else "Copy"
    if not ctx.confirm(f"{verb} {len(plan.records)} file(s) into {plan.summary.groups} group folder(s)?"):
        log.info("split_declined")
        return result
    result.outputs = route(ctx, plan, move=move)
    result.acted = True
    return result


# ---------------------------------------------------------------------------
# Remux tool
# ---------------------------------------------------------------------------

def plan_remux(ctx: RunContext, template: Optional[List[str]], scan_only: bool = False) -> RemuxPlan:
    """A template gates the batch on one shared track layout; so does scan-only."""
    records = make_records(ctx)
    per_file = set(PER_FILE_FLAGS) | set(ctx.config.extra_per_file_flags)
    plan = RemuxPlan(
        records=records,
        template=sanitize(template, per_file) if template is not None else None,
        out_dir=ctx.root / ctx.config.remux_dir,
        out_ext=declared_extension(template) if template else None,
    )
    _check_outputs(plan)
    if template is not None or scan_only:
        plan.verdict = _gate(records)
    if ctx.report:
        ctx.report(plan)
    return plan


def output_path(plan: RemuxPlan, source: Path) -> Path:
    ext = plan.out_ext or normalize_extension(source.suffix)
    out = plan.out_dir / f"{source.stem}.{ext}"
    if out.resolve() == source.resolve():
        raise TrackshapeError(f"output would overwrite its source: {source.name}")
    return out


def _check_outputs(plan: RemuxPlan) -> None:
    """Refuse a batch where two sources map to one output (e.g. Ep.MKV and Ep.mkv)."""
    claimed: dict[Path, Path] = {}
    for rec in plan.records:
        out = output_path(plan, rec.path)
        if out in claimed:
            raise OutputCollision(out, claimed[out], rec.path)
        claimed[out] = rec.path


def remux_batch(ctx: RunContext, plan: RemuxPlan, strip_titles: bool = False,
                set_titles: bool = False) -> List[Path]:
    total = len(plan.records)
    outputs: List[Path] = []
    plan.out_dir.mkdir(parents=True, exist_ok=True)
    with ArtifactGuard() as guard:
        option_file = None
        if plan.template:
            option_file = guard.track(write_template(plan.template, ctx.root))
        for i, rec in enumerate(plan.records, 1):
            ctx.progress(i, total, rec.path, "remux")
            out = output_path(plan, rec.path)
            options: List[str] = []
            if set_titles:
                options += ["--title", rec.path.stem]
            if option_file:
                options.append(f"@{option_file}")

            guard.track(out)
            ctx.toolbox.remuxer.remux(out, options, rec.path)
            if strip_titles:
                ctx.toolbox.field_deleter.delete(out, "title")
            guard.release(out)

            outputs.append(out)
            log.info("remuxed", file=rec.name, index=i, total=total, output=str(out))
    return outputs


def run_remux(ctx: RunContext, template: Optional[List[str]], scan_only: bool = False,
              strip_titles: bool = False, set_titles: bool = False) -> BatchResult:
    plan = plan_remux(ctx, template, scan_only=scan_only)
    result = BatchResult(plan=plan)
    if scan_only:
        return result
    if not ctx.confirm(f"Remux {len(plan.records)} file(s) into {plan.out_dir}?"):
        log.info("remux_declined")
        return result
    result.outputs = remux_batch(ctx, plan, strip_titles=strip_titles, set_titles=set_titles)
    result.acted = True
    return result


