import pytest

from trackshape.discovery import discover, find_media_files, normalize_extension
from trackshape.errors import NoMatchingFiles


def test_sorted_by_name_and_filtered(tmp_path):
    for name in ("b.mkv", "A.MKV", "c.mp4", ".hidden.mkv", "notes.txt"):
        (tmp_path / name).write_bytes(b"x")
    (tmp_path / "sub").mkdir()
    (tmp_path / "sub" / "d.mkv").write_bytes(b"x")

    files = discover(tmp_path, "mkv")
    assert [f.name for f in files] == ["A.MKV", "b.mkv"]


def test_extension_accepts_leading_dot(tmp_path):
    (tmp_path / "x.mka").write_bytes(b"x")
    assert [f.name for f in find_media_files(tmp_path, ".MKA")] == ["x.mka"]
    assert normalize_extension(" .Mkv ") == "mkv"


def test_no_matching_files(tmp_path):
    (tmp_path / "x.mp4").write_bytes(b"x")
    with pytest.raises(NoMatchingFiles) as exc:
        discover(tmp_path, "mkv")
    assert exc.value.extension == "mkv"
