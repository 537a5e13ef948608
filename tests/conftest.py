# File: tests/conftest.py

import pytest
from pathlib import Path

from trackshape.config import Config
from trackshape.errors import ExternalCommandFailure, UnsupportedFile
from trackshape.executor import RunContext
from trackshape.facilities import FieldDeleter, Identifier, Remuxer, Toolbox, Transfer


def mkv_doc(*tracks):
    """
    Builds an `mkvmerge -J` style document.
    Each track is (type, codec, language).
    """
    return {
        "container": {"recognized": True, "supported": True, "type": "Matroska"},
        "errors": [],
        "tracks": [
            {
                "id": i,
                "type": ttype,
                "codec": codec,
                "properties": {"number": i + 1, "language": lang},
            }
            for i, (ttype, codec, lang) in enumerate(tracks)
        ],
    }


MOVIE = mkv_doc(("video", "AVC/H.264/MPEG-4p10", "und"), ("audio", "AAC", "eng"))
MOVIE_EXTRA_AUDIO = mkv_doc(
    ("video", "AVC/H.264/MPEG-4p10", "und"), ("audio", "AAC", "eng"), ("audio", "AAC", "jpn")
)


class FakeIdentifier(Identifier):
    def __init__(self, docs):
        self.docs = docs  # file name -> document (or None for unsupported)
        self.calls = []

    def identify(self, path):
        self.calls.append(Path(path).name)
        doc = self.docs.get(Path(path).name)
        if doc is None:
            raise UnsupportedFile(path, "fake: unsupported")
        return doc


class FakeRemuxer(Remuxer):
    def __init__(self, fail_on=None):
        self.fail_on = fail_on
        self.calls = []
        self.on_call = None

    def remux(self, output, options, source):
        self.calls.append((Path(output), list(options), Path(source)))
        if self.on_call:
            self.on_call(output, options, source)
        Path(output).write_bytes(b"partial")
        if self.fail_on and Path(source).name == self.fail_on:
            raise ExternalCommandFailure(["mkvmerge"], 2, "Error: fake failure")


class FakeFieldDeleter(FieldDeleter):
    def __init__(self):
        self.calls = []

    def delete(self, path, field):
        self.calls.append((Path(path), field))


class FakeTransfer(Transfer):
    def __init__(self, fail_on=None):
        self.fail_on = fail_on
        self.calls = []

    def transfer(self, source, dest_dir, move=False):
        self.calls.append((Path(source).name, Path(dest_dir).name, move))
        if self.fail_on and Path(source).name == self.fail_on:
            raise ExternalCommandFailure(["rsync"], 23, "rsync: fake failure")
        dest_dir.mkdir(parents=True, exist_ok=True)
        return dest_dir / Path(source).name


@pytest.fixture
def media_dir(tmp_path):
    """Three empty .mkv files; names sort as a, b, c."""
    root = tmp_path / "batch"
    root.mkdir()
    for name in ("a.mkv", "b.mkv", "c.mkv"):
        (root / name).write_bytes(b"FAKE_MKV")
    return root


@pytest.fixture
def toolbox_factory():
    def make(docs, remux_fail_on=None, transfer_fail_on=None):
        return Toolbox(
            identifier=FakeIdentifier(docs),
            remuxer=FakeRemuxer(fail_on=remux_fail_on),
            field_deleter=FakeFieldDeleter(),
            transfer=FakeTransfer(fail_on=transfer_fail_on),
        )
    return make


@pytest.fixture
def make_ctx():
    def make(root, toolbox, confirm=True, extension="mkv", config=None):
        progress = []
        ctx = RunContext(
            root=root,
            extension=extension,
            config=config or Config(),
            toolbox=toolbox,
            progress=lambda i, n, p, action: progress.append((i, n, p.name, action)),
            confirm=lambda prompt: confirm,
        )
        ctx.progress_log = progress
        return ctx
    return make
