"""
errors — Failure taxonomy. Each error carries the process exit code the CLI uses.
"""
from __future__ import annotations
from pathlib import Path


class TrackshapeError(Exception):
    exit_code = 1


class MissingDependency(TrackshapeError):
    def __init__(self, name: str):
        self.name = name
        super().__init__(f"required tool not found: {name}")


class NoMatchingFiles(TrackshapeError):
    def __init__(self, root: Path, extension: str):
        self.root = root
        self.extension = extension
        super().__init__(f"no *.{extension} files in {root}")


class UnsupportedFile(TrackshapeError):
    def __init__(self, path: Path, reason: str = ""):
        self.path = Path(path)
        self.reason = reason
        msg = f"unsupported or unreadable file: {self.path.name}"
        if reason:
            msg += f" ({reason})"
        super().__init__(msg)


class ExternalCommandFailure(TrackshapeError):
    def __init__(self, cmd: list[str], returncode: int, stderr: str = ""):
        self.cmd = cmd
        self.returncode = returncode
        self.stderr = stderr
        detail = stderr.strip().splitlines()[-1] if stderr.strip() else "no output"
        super().__init__(f"{Path(cmd[0]).name} exited with {returncode}: {detail}")


class TemplateError(TrackshapeError):
    def __init__(self, path: Path, reason: str):
        self.path = path
        super().__init__(f"invalid options template {path}: {reason}")


class MetadataMismatch(TrackshapeError):
    """Raised when a batch fails the consistency check. Wraps the classifier's Mismatch."""
    exit_code = 2

    def __init__(self, mismatch):
        self.mismatch = mismatch
        super().__init__(
            f"track layout of {mismatch.record.path.name} (file {mismatch.position}) "
            f"differs from the batch: {mismatch.found} != {mismatch.baseline}"
        )


class ConfigError(TrackshapeError):
    def __init__(self, source: str, reason: str):
        self.source = source
        super().__init__(f"bad configuration ({source}): {reason}")


class OutputCollision(TrackshapeError):
    def __init__(self, output: Path, first: Path, second: Path):
        self.output = output
        self.sources = (first, second)
        super().__init__(f"{first.name} and {second.name} would both be written to {output}")
