"""
facilities — The external tools trackshape drives, one narrow interface each.

Identification and remuxing go through MKVToolNix (mkvmerge), field deletion
through mkvpropedit, copy/move through rsync. Every concrete class only builds a
command line, runs it and maps failures onto trackshape.errors; tests swap in
fakes through Toolbox.
"""
from __future__ import annotations
import json
import shutil
import signal
import subprocess
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable

import structlog

from .config import Config
from .errors import ExternalCommandFailure, MissingDependency, UnsupportedFile

log = structlog.get_logger()

# MKVToolNix exit codes: 0 ok, 1 warnings, 2 error
_MKV_WARNINGS = 1

# Seconds an interrupted child gets to clean up before it is killed
_STOP_GRACE = 30


class Identifier(ABC):
    """
    Contract for reading a container's structured metadata.
    """
    @abstractmethod
    def identify(self, path: Path) -> dict[str, Any]:
        """
        Returns the parsed identification document for path.
        Raises UnsupportedFile if the file cannot be identified.
        """


class Remuxer(ABC):
    @abstractmethod
    def remux(self, output: Path, options: list[str], source: Path) -> None:
        """Writes a rewritten container for source at output."""


class FieldDeleter(ABC):
    @abstractmethod
    def delete(self, path: Path, field: str) -> None:
        """Removes a segment-info field (e.g. "title") in place."""


class Transfer(ABC):
    @abstractmethod
    def transfer(self, source: Path, dest_dir: Path, move: bool = False) -> Path:
        """Copies (or moves) source into dest_dir. Returns the destination path."""


def _run(cmd: list[str], timeout: int | None = None) -> subprocess.CompletedProcess:
    """
    Run cmd to completion and capture its output.

    On KeyboardInterrupt (Ctrl-C, or SIGTERM while a batch is active) the child
    is sent SIGTERM and waited for before the interrupt propagates, so tools like
    rsync get to remove their own in-progress files.
    """
    log.debug("exec", command=" ".join(cmd))
    try:
        proc = subprocess.Popen(
            cmd,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            encoding="utf-8",
            errors="replace",
        )
    except FileNotFoundError:
        raise MissingDependency(cmd[0]) from None

    with proc:
        try:
            stdout, stderr = proc.communicate(timeout=timeout)
        except subprocess.TimeoutExpired:
            proc.kill()
            proc.communicate()
            raise
        except KeyboardInterrupt:
            _stop(proc)
            raise
    return subprocess.CompletedProcess(cmd, proc.returncode, stdout, stderr)


def _stop(proc: subprocess.Popen) -> None:
    if proc.poll() is not None:
        return
    log.warning("child_interrupted", pid=proc.pid, command=str(proc.args[0]))
    proc.send_signal(signal.SIGTERM)
    try:
        proc.wait(timeout=_STOP_GRACE)
    except subprocess.TimeoutExpired:
        proc.kill()
        proc.wait()


class MkvmergeIdentifier(Identifier):
    def __init__(self, binary: str = "mkvmerge", timeout: int = 300):
        self.binary = binary
        self.timeout = timeout

    def identify(self, path: Path) -> dict[str, Any]:
        cmd = [self.binary, "-J", str(path)]
        try:
            p = _run(cmd, timeout=self.timeout)
        except subprocess.TimeoutExpired:
            log.error("identify_timeout", file=str(path), timeout=self.timeout)
            raise UnsupportedFile(path, "identification timed out") from None

        if p.returncode > _MKV_WARNINGS:
            log.error("identify_failed", file=str(path), code=p.returncode, stderr=p.stderr[:500])
            raise UnsupportedFile(path, f"mkvmerge exited with {p.returncode}")
        try:
            data = json.loads(p.stdout)
        except json.JSONDecodeError as e:
            log.error("identify_bad_json", file=str(path), error=str(e))
            raise UnsupportedFile(path, "unparseable identification output") from e
        if not isinstance(data, dict):
            raise UnsupportedFile(path, "unexpected identification output")

        if data.get("errors"):
            raise UnsupportedFile(path, "; ".join(str(e) for e in data["errors"]))
        container = data.get("container") or {}
        if container.get("recognized") is False or container.get("supported") is False:
            raise UnsupportedFile(path, "container not recognized")
        return data


class MkvmergeRemuxer(Remuxer):
    def __init__(self, binary: str = "mkvmerge"):
        self.binary = binary

    def remux(self, output: Path, options: list[str], source: Path) -> None:
        cmd = [self.binary, "--output", str(output), *options, str(source)]
        log.info("mkvmerge_command", command=" ".join(cmd))
        p = _run(cmd)
        if p.returncode > _MKV_WARNINGS:
            # mkvmerge reports errors on stdout
            raise ExternalCommandFailure(cmd, p.returncode, p.stderr or p.stdout)
        if p.returncode == _MKV_WARNINGS:
            log.warning("mkvmerge_warnings", output=str(output), detail=p.stdout[-500:])


class MkvpropeditFieldDeleter(FieldDeleter):
    def __init__(self, binary: str = "mkvpropedit"):
        self.binary = binary

    def delete(self, path: Path, field: str) -> None:
        cmd = [self.binary, str(path), "--delete", field]
        p = _run(cmd)
        if p.returncode > _MKV_WARNINGS:
            raise ExternalCommandFailure(cmd, p.returncode, p.stderr or p.stdout)
        log.info("field_deleted", file=str(path), field=field)


class RsyncTransfer(Transfer):
    """
    rsync in archive mode: a re-run skips files already complete at the
    destination (size + mtime), and without --partial an interrupted copy
    leaves nothing behind.
    """

    def __init__(self, binary: str = "rsync"):
        self.binary = binary

    def transfer(self, source: Path, dest_dir: Path, move: bool = False) -> Path:
        dest_dir.mkdir(parents=True, exist_ok=True)
        cmd = [self.binary, "-a"]
        if move:
            cmd.append("--remove-source-files")
        cmd += [str(source), f"{dest_dir}/"]
        p = _run(cmd)
        if p.returncode != 0:
            raise ExternalCommandFailure(cmd, p.returncode, p.stderr)
        return dest_dir / source.name


@dataclass
class Toolbox:
    identifier: Identifier
    remuxer: Remuxer
    field_deleter: FieldDeleter
    transfer: Transfer


def build_toolbox(cfg: Config) -> Toolbox:
    return Toolbox(
        identifier=MkvmergeIdentifier(cfg.mkvmerge, timeout=cfg.identify_timeout),
        remuxer=MkvmergeRemuxer(cfg.mkvmerge),
        field_deleter=MkvpropeditFieldDeleter(cfg.mkvpropedit),
        transfer=RsyncTransfer(cfg.rsync),
    )


def require_tools(names: Iterable[str]) -> None:
    """Fail fast if any executable is missing, before any file is touched."""
    for name in names:
        if not shutil.which(name):
            log.error("missing_dependency", tool=name)
            raise MissingDependency(name)
