"""
signature — Track signatures and their fingerprints.

A signature is the ordered tuple of (codec, number, language, type) per track,
exactly as the identification tool reports it. Two files share a fingerprint
iff their signatures are equal element-wise, order included.
"""
from __future__ import annotations
import hashlib
import json
from dataclasses import dataclass, astuple
from pathlib import Path
from typing import Any, Tuple

import structlog

from .errors import UnsupportedFile
from .facilities import Identifier

log = structlog.get_logger()

FINGERPRINT_WIDTH = 16  # hex chars, 64 bits


@dataclass(frozen=True)
class Track:
    codec: str
    number: str
    language: str
    type: str


TrackSignature = Tuple[Track, ...]


def _field(value: Any) -> str:
    return "" if value is None else str(value)


def signature_from_identify(data: dict[str, Any], path: Path) -> TrackSignature:
    """Select the four signature fields per track from an `mkvmerge -J` document."""
    tracks = data.get("tracks")
    if not isinstance(tracks, list):
        raise UnsupportedFile(path, "no track list reported")

    out = []
    for t in tracks:
        props = t.get("properties") or {}
        number = props.get("number", t.get("id"))
        out.append(Track(
            codec=_field(t.get("codec")),
            number=_field(number),
            language=_field(props.get("language")),
            type=_field(t.get("type")),
        ))
    return tuple(out)


def extract(path: Path, identifier: Identifier) -> TrackSignature:
    """Identify path and return its track signature. Raises UnsupportedFile."""
    data = identifier.identify(Path(path))
    sig = signature_from_identify(data, Path(path))
    log.debug("signature", file=str(path), tracks=len(sig))
    return sig


def serialize(sig: TrackSignature) -> str:
    # JSON keeps track boundaries unambiguous whatever the field values contain
    return json.dumps([list(astuple(t)) for t in sig], separators=(",", ":"), ensure_ascii=False)


def fingerprint(sig: TrackSignature) -> str:
    digest = hashlib.sha256(serialize(sig).encode("utf-8")).hexdigest()
    return digest[:FINGERPRINT_WIDTH]


def describe(sig: TrackSignature) -> str:
    """Short human form, e.g. `video/und, audio/eng, audio/jpn`."""
    if not sig:
        return "(no tracks)"
    return ", ".join(f"{t.type}/{t.language or '?'}" for t in sig)
