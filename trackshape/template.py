"""
template — Shared remux option templates (MKVToolNix JSON option files).

The template is a JSON array of command-line tokens, as written by
MKVToolNix GUI's "Create option file". It mixes options that apply to the whole
batch (language tags, track selection, flags) with fields that only make sense
for the file it was made from: output path, title, UI language, track names and
the input file group `( path )`. sanitize() drops the latter so the rest can be
replayed against every file of a batch.
"""
from __future__ import annotations
import json
import os
import tempfile
from pathlib import Path
from typing import Iterable, List, Optional

import structlog

from .errors import TemplateError

log = structlog.get_logger()

# Flags whose value (the next token) is per-file
PER_FILE_FLAGS = frozenset({"--output", "--title", "--ui-language", "--track-name"})

_GROUP_OPEN = "("
_GROUP_CLOSE = ")"


def load_template(path: str | Path) -> List[str]:
    path = Path(path)
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise TemplateError(path, f"not valid JSON ({e})") from e
    except OSError as e:
        raise TemplateError(path, str(e)) from e
    if not isinstance(data, list) or not all(isinstance(t, str) for t in data):
        raise TemplateError(path, "expected a JSON array of strings")
    log.info("template_loaded", path=str(path), tokens=len(data))
    return data


def sanitize(tokens: List[str], per_file_flags: Iterable[str] = PER_FILE_FLAGS) -> List[str]:
    """
    Remove per-file flag/value pairs and `( input )` groups; keep everything
    else in order. Fields that are absent are simply not removed.
    """
    flags = frozenset(per_file_flags)
    out: List[str] = []
    i = 0
    n = len(tokens)
    while i < n:
        tok = tokens[i]
        if tok in flags:
            i += 2  # flag + value; a trailing flag with no value goes alone
            continue
        if tok == _GROUP_OPEN:
            close = _find_close(tokens, i)
            if close is not None:
                i = close + 1
                continue
        out.append(tok)
        i += 1
    removed = n - len(out)
    if removed:
        log.debug("template_sanitized", removed=removed, kept=len(out))
    return out


def _find_close(tokens: List[str], start: int) -> Optional[int]:
    for j in range(start + 1, len(tokens)):
        if tokens[j] == _GROUP_CLOSE:
            return j
    return None


def declared_extension(tokens: List[str]) -> Optional[str]:
    """Extension of the template's --output value, without the dot."""
    i = 0
    n = len(tokens)
    while i < n:
        tok = tokens[i]
        if tok == "--output":
            if i + 1 == n:
                return None
            ext = Path(tokens[i + 1]).suffix.lstrip(".")
            return ext.lower() or None
        if tok in PER_FILE_FLAGS:
            i += 2  # skip its value
            continue
        if tok == _GROUP_OPEN:
            close = _find_close(tokens, i)
            if close is not None:
                i = close + 1
                continue
        i += 1
    return None


def write_template(tokens: List[str], directory: Path) -> Path:
    """Write tokens as a temporary option file for `mkvmerge @file`. Caller removes it."""
    fd, name = tempfile.mkstemp(prefix=".trackshape-", suffix=".json", dir=directory)
    with os.fdopen(fd, "w", encoding="utf-8") as f:
        json.dump(tokens, f, ensure_ascii=False, indent=2)
    return Path(name)
