import json
import pytest

from trackshape.errors import TemplateError
from trackshape.template import (
    PER_FILE_FLAGS, declared_extension, load_template, sanitize, write_template,
)

# Shaped like an MKVToolNix GUI "Create option file" export
GUI_TEMPLATE = [
    "--ui-language", "en_US",
    "--output", "/media/out/Show S01E01.mkv",
    "--language", "0:und",
    "--language", "1:jpn",
    "--track-name", "1:Japanese 2.0",
    "--default-track", "1:yes",
    "(", "/media/in/Show S01E01.mkv", ")",
    "--title", "Show S01E01",
    "--track-order", "0:0,0:1",
]


def test_scenario_title_and_output_pairs_removed():
    tokens = ["--title", "Episode 1", "--output", "out.mkv", "-o", "shared.mkv"]
    assert sanitize(tokens) == ["-o", "shared.mkv"]


def test_gui_template_keeps_only_shared_options():
    assert sanitize(GUI_TEMPLATE) == [
        "--language", "0:und",
        "--language", "1:jpn",
        "--default-track", "1:yes",
        "--track-order", "0:0,0:1",
    ]


def test_sanitize_is_idempotent():
    for tokens in (
        GUI_TEMPLATE,
        ["--title", "--title", "A", "(", "x"],
        ["(", "a", ")", ")", "--output"],
        [],
    ):
        once = sanitize(tokens)
        assert sanitize(once) == once


def test_shared_tokens_survive_in_order():
    tokens = ["--no-chapters", "--title", "T", "-A", "--language", "2:eng"]
    assert sanitize(tokens) == ["--no-chapters", "-A", "--language", "2:eng"]


def test_absent_fields_pass_through():
    tokens = ["--language", "0:eng", "--no-attachments"]
    assert sanitize(tokens) == tokens


def test_trailing_flag_without_value_is_dropped():
    assert sanitize(["--no-global-tags", "--title"]) == ["--no-global-tags"]


def test_unclosed_group_is_kept():
    assert sanitize(["(", "in.mkv"]) == ["(", "in.mkv"]


def test_multiline_title_is_removed():
    tokens = ["--title", "Line one\nLine two", "--language", "0:eng"]
    assert sanitize(tokens) == ["--language", "0:eng"]


def test_extra_per_file_flags():
    tokens = ["--chapters", "ep1.xml", "--language", "0:eng"]
    assert sanitize(tokens) == tokens
    assert sanitize(tokens, PER_FILE_FLAGS | {"--chapters"}) == ["--language", "0:eng"]


def test_declared_extension():
    assert declared_extension(GUI_TEMPLATE) == "mkv"
    assert declared_extension(["--output", "x.MKA"]) == "mka"
    assert declared_extension(["--output", "noext"]) is None
    assert declared_extension(["--language", "0:eng"]) is None


def test_declared_extension_skips_flag_values():
    assert declared_extension(["--title", "--output", "x.mka"]) is None
    assert declared_extension(["--title", "--output", "--output", "x.mka"]) == "mka"
    assert declared_extension(["(", "--output", ")", "--output", "y.mkv"]) == "mkv"
    assert declared_extension(["--output"]) is None


def test_load_template(tmp_path):
    path = tmp_path / "options.json"
    path.write_text(json.dumps(GUI_TEMPLATE), encoding="utf-8")
    assert load_template(path) == GUI_TEMPLATE


@pytest.mark.parametrize("content", ["{not json", '{"a": 1}', '["ok", 3]'])
def test_load_template_rejects_bad_documents(tmp_path, content):
    path = tmp_path / "options.json"
    path.write_text(content, encoding="utf-8")
    with pytest.raises(TemplateError):
        load_template(path)


def test_write_template_round_trips_as_hidden_json(tmp_path):
    path = write_template(["--language", "0:jpn", "Ünïcode"], tmp_path)
    assert path.parent == tmp_path
    assert path.name.startswith(".")
    assert json.loads(path.read_text(encoding="utf-8")) == ["--language", "0:jpn", "Ünïcode"]
