"""
Tests for the phrasebook build script.
"""

import json

import pytest

from build_phrasebook import main, read_corpus


@pytest.fixture
def corpus(tmp_path):
    path = tmp_path / "corpus.txt"
    path.write_text("the quick fox jumps\n\nthe lazy dog sleeps\n", encoding="utf-8")
    return path


def test_read_corpus_skips_blank_lines_and_unreadable_files(tmp_path, corpus):
    lines = read_corpus([str(corpus), str(tmp_path / "missing.txt")])
    assert lines == ["the quick fox jumps", "the lazy dog sleeps"]


def test_main_builds_and_saves(tmp_path, corpus, capsys):
    out = tmp_path / "models" / "pb.json"
    main(["--corpus", str(corpus), "--out", str(out), "--order", "2",
          "--count", "3", "--seed", "1"])

    data = json.loads(out.read_text(encoding="utf-8"))
    assert data["the quick"] == ["fox"]
    assert data["the lazy"] == ["dog"]
    assert "lazy dog" in data

    printed = capsys.readouterr().out.splitlines()
    assert printed[0] == f"Saved phrasebook: {out} (6 keys)"
    assert len(printed) == 4


def test_append_merges_existing(tmp_path, corpus, capsys):
    out = tmp_path / "pb.json"
    out.write_text(json.dumps({"the quick": ["cat"]}), encoding="utf-8")
    main(["--corpus", str(corpus), "--out", str(out), "--order", "2",
          "--count", "0", "--append"])
    data = json.loads(out.read_text(encoding="utf-8"))
    assert sorted(data["the quick"]) == ["cat", "fox"]


def test_no_corpus_files(tmp_path):
    with pytest.raises(SystemExit):
        main(["--corpus", str(tmp_path / "*.txt"), "--out", str(tmp_path / "pb.json")])
