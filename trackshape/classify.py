"""
classify — Group files by fingerprint, or check that a batch shares one.

Two modes over the same fingerprint:
1. classify() — partition into equivalence groups (split tool)
2. verify()   — first-divergence consistency check gating a shared remux
"""
from __future__ import annotations
from dataclasses import dataclass, field
from functools import cached_property
from pathlib import Path
from typing import Callable, Sequence

import structlog

from .signature import TrackSignature, fingerprint

log = structlog.get_logger()


@dataclass(eq=False)
class FileRecord:
    """A discovered file. Its signature is identified on first access, then fixed."""
    path: Path
    extractor: Callable[[Path], TrackSignature] = field(repr=False)

    @cached_property
    def signature(self) -> TrackSignature:
        return self.extractor(self.path)

    @cached_property
    def fingerprint(self) -> str:
        return fingerprint(self.signature)

    @property
    def name(self) -> str:
        return self.path.name


@dataclass(frozen=True)
class Ok:
    fingerprint: str
    checked: int


@dataclass(frozen=True)
class Mismatch:
    record: FileRecord
    position: int  # 1-based, enumeration order
    baseline: str
    found: str


@dataclass
class GroupSummary:
    groups: int
    files: int
    sizes: dict[str, int] = field(default_factory=dict)

    @property
    def fingerprints(self) -> list[str]:
        return list(self.sizes)


def classify(records: Sequence[FileRecord]) -> dict[str, list[FileRecord]]:
    groups: dict[str, list[FileRecord]] = {}
    for rec in records:
        groups.setdefault(rec.fingerprint, []).append(rec)
    log.info("classified", files=len(records), groups=len(groups))
    return groups


def summarize(groups: dict[str, list[FileRecord]]) -> GroupSummary:
    return GroupSummary(
        groups=len(groups),
        files=sum(len(v) for v in groups.values()),
        sizes={fp: len(v) for fp, v in groups.items()},
    )


def verify(records: Sequence[FileRecord]) -> Ok | Mismatch:
    """
    Compare every record against the first one, in order, and stop at the
    first divergence. Records after it are never identified.

    A single record is always Ok; only its signature is read.
    """
    if not records:
        raise ValueError("verify() needs at least one record")

    first = records[0]
    if len(records) == 1:
        _ = first.signature
        return Ok(fingerprint=first.fingerprint, checked=1)

    baseline = first.fingerprint
    for pos, rec in enumerate(records[1:], start=2):
        if rec.fingerprint != baseline:
            log.warning("batch_mismatch", file=str(rec.path), position=pos,
                        baseline=baseline, found=rec.fingerprint)
            return Mismatch(record=rec, position=pos, baseline=baseline, found=rec.fingerprint)
    return Ok(fingerprint=baseline, checked=len(records))
