"""
trackshape — Group and batch-remux container media files by track structure.

Public API:
    extract(path, identifier) -> TrackSignature
    fingerprint(signature) -> str
    classify(records) -> dict[str, list[FileRecord]]
    verify(records) -> Ok | Mismatch
    sanitize(tokens) -> list[str]
"""
from .signature import Track, extract, fingerprint
from .classify import FileRecord, Ok, Mismatch, classify, verify, summarize
from .template import load_template, sanitize, declared_extension

__version__ = "0.3.0"

__all__ = [
    "Track",
    "extract",
    "fingerprint",
    "FileRecord",
    "Ok",
    "Mismatch",
    "classify",
    "verify",
    "summarize",
    "load_template",
    "sanitize",
    "declared_extension",
    "__version__",
]
