from __future__ import annotations

from pathlib import Path

from ansi_shortlog.utils_web.tail import first_line, tail_bytes, tail_jsonl, tail_lines


def test_tail_lines_small(tmp_path: Path):
    p = tmp_path / "x.log"
    p.write_text("\n".join([f"line{i}" for i in range(1, 51)]) + "\n", encoding="utf-8")

    out = tail_lines(p, limit=10)
    assert out[0].strip() == "line41"
    assert out[-1].strip() == "line50"


def test_tail_lines_missing_file(tmp_path: Path):
    assert tail_lines(tmp_path / "none.log") == []


def test_tail_jsonl_parsing(tmp_path: Path):
    p = tmp_path / "j.log"
    p.write_text('{"a":1}\nnotjson\n{"b":2}\n', encoding="utf-8")

    out = tail_jsonl(p, limit=10)
    assert out[0]["parsed"] == {"a": 1}
    assert out[1]["parsed"] is None
    assert out[2]["parsed"] == {"b": 2}


def test_tail_bytes_window(tmp_path: Path):
    p = tmp_path / "log"
    p.write_bytes(b"a" * 3000)

    offset, data = tail_bytes(p, 1)
    assert offset == 3000 - 1024
    assert len(data) == 1024

    offset, data = tail_bytes(p, 10)
    assert offset == 0
    assert len(data) == 3000


def test_first_line():
    assert first_line(b"ab\r\ncd\r\n", b"\r\n") == b"ab\r\n"
    assert first_line(b"no terminator", b"\n") is None
