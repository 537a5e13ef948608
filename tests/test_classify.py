import pytest
from pathlib import Path

from trackshape.classify import FileRecord, Mismatch, Ok, classify, summarize, verify
from trackshape.signature import Track, fingerprint

V = Track("AVC", "1", "und", "video")
A_EN = Track("AAC", "2", "eng", "audio")
A_JP = Track("AAC", "3", "jpn", "audio")


def records(*sigs):
    """One FileRecord per signature; `calls` lists the names identified so far."""
    calls = []

    def make(i, sig):
        def _extract(path):
            calls.append(path.name)
            return sig
        return FileRecord(Path(f"f{i}.mkv"), _extract)

    return [make(i, s) for i, s in enumerate(sigs, 1)], calls


def test_scenario_identical_files_form_one_group():
    recs, _ = records((V, A_EN), (V, A_EN), (V, A_EN))
    groups = classify(recs)
    assert list(groups) == [fingerprint((V, A_EN))]
    assert len(groups[fingerprint((V, A_EN))]) == 3
    assert isinstance(verify(recs), Ok)


def test_scenario_extra_audio_track_in_file_two():
    recs, _ = records((V, A_EN), (V, A_EN, A_JP), (V, A_EN))
    groups = classify(recs)
    assert sorted(len(g) for g in groups.values()) == [1, 2]

    verdict = verify(recs)
    assert isinstance(verdict, Mismatch)
    assert verdict.record is recs[1]
    assert verdict.position == 2
    assert verdict.baseline == fingerprint((V, A_EN))
    assert verdict.found == fingerprint((V, A_EN, A_JP))


def test_grouping_matches_signature_equality():
    sigs = [(V,), (V, A_EN), (V,), (V, A_JP, A_EN), (V, A_EN, A_JP), (), (V, A_EN)]
    recs, _ = records(*sigs)
    groups = classify(recs)
    for a in recs:
        for b in recs:
            same_group = any(a in g and b in g for g in groups.values())
            assert same_group == (a.signature == b.signature)


def test_groups_keep_first_seen_and_enumeration_order():
    recs, _ = records((V, A_JP), (V,), (V, A_JP), (V,))
    groups = classify(recs)
    assert list(groups) == [fingerprint((V, A_JP)), fingerprint((V,))]
    assert groups[fingerprint((V,))] == [recs[1], recs[3]]


def test_single_file_is_always_ok():
    recs, calls = records(())
    verdict = verify(recs)
    assert isinstance(verdict, Ok)
    assert verdict.checked == 1
    assert calls == ["f1.mkv"]


def test_verify_stops_at_first_divergence():
    # files 3 and 7 diverge; the scan must stop at 3
    sigs = [(V, A_EN)] * 7
    sigs[2] = (V,)
    sigs[6] = (V, A_JP)
    recs, calls = records(*sigs)
    verdict = verify(recs)
    assert isinstance(verdict, Mismatch)
    assert verdict.position == 3
    assert calls == ["f1.mkv", "f2.mkv", "f3.mkv"]


def test_verify_rejects_empty_batch():
    with pytest.raises(ValueError):
        verify([])


def test_signature_is_identified_once():
    recs, calls = records((V,))
    rec = recs[0]
    assert rec.signature == rec.signature
    assert rec.fingerprint == fingerprint((V,))
    assert calls == ["f1.mkv"]


def test_summarize():
    recs, _ = records((V,), (V, A_EN), (V,))
    summary = summarize(classify(recs))
    assert summary.groups == 2
    assert summary.files == 3
    assert summary.fingerprints == [fingerprint((V,)), fingerprint((V, A_EN))]
    assert summary.sizes[fingerprint((V,))] == 2
