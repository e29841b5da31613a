from __future__ import annotations

import json
from pathlib import Path

from ansi_shortlog.actions import ColorizedAction, Command
from ansi_shortlog.config import Config
from ansi_shortlog.line_identifier import LineIdentifier
from ansi_shortlog.listener import on_finalized, start_actions_by_note
from ansi_shortlog.notes import encode_note
from ansi_shortlog.runs import Run, load_run, save_run
from ansi_shortlog.utils.logger import init_logger, reset_logger


def _cfg(tmp_path: Path, tail_kb: int = 1) -> Config:
    return Config(data_root=str(tmp_path), console_tail_kb=tail_kb, eol="lf", buffer_size=512)


def _run_with_log(tmp_path: Path, data: bytes, actions: list[ColorizedAction]) -> Run:
    run_dir = tmp_path / "runs" / "7"
    run_dir.mkdir(parents=True)
    (run_dir / "log").write_bytes(data)
    return Run(root_dir=run_dir, actions=list(actions))


def test_on_finalized_attaches_current_action(tmp_path: Path):
    xterm = ColorizedAction(id="s1", color_map_name="xterm")
    stop = ColorizedAction(id="s2", color_map_name="xterm", command=Command.STOP)
    filler = b"." * 99 + b"\n"
    data = encode_note(xterm).encode("ascii") + b"go\n" + filler * 40
    run = _run_with_log(tmp_path, data, [xterm, stop])

    action = on_finalized(run, _cfg(tmp_path))

    assert action is not None
    assert action.command == Command.CURRENT
    assert action.color_map_name == "xterm"
    assert run.actions[-1] == action

    size = len(data)
    start = size - 1024
    line = data[start : data.index(b"\n", start) + 1].decode("ascii")
    assert action.id == LineIdentifier().hash(line, 1)


def test_on_finalized_without_start_actions(tmp_path: Path):
    run = _run_with_log(tmp_path, b"plain\n", [ColorizedAction(id="x", color_map_name="vga", command=Command.STOP)])
    assert on_finalized(run, _cfg(tmp_path)) is None
    assert len(run.actions) == 1


def test_on_finalized_without_log(tmp_path: Path):
    run_dir = tmp_path / "runs" / "8"
    run_dir.mkdir(parents=True)
    run = Run(root_dir=run_dir, actions=[ColorizedAction(id="x", color_map_name="vga")])
    assert on_finalized(run, _cfg(tmp_path)) is None


def test_on_finalized_no_marker_before_shortlog(tmp_path: Path):
    xterm = ColorizedAction(id="s1", color_map_name="xterm")
    filler = b"." * 99 + b"\n"
    data = filler * 40 + encode_note(xterm).encode("ascii") + b"late\n"
    run = _run_with_log(tmp_path, data, [xterm])
    assert on_finalized(run, _cfg(tmp_path)) is None


def test_unencodable_action_is_skipped(tmp_path: Path):
    logs = tmp_path / "logs"
    init_logger(logs_root=logs)
    try:
        good = ColorizedAction(id="ok", color_map_name="xterm")
        bad = ColorizedAction(id="bad", color_map_name=object())  # type: ignore[arg-type]
        out = start_actions_by_note([good, bad])
    finally:
        reset_logger()

    assert list(out.values()) == [good]
    recs = [json.loads(x) for x in (logs / "listener.log").read_text(encoding="utf-8").splitlines()]
    assert recs[-1]["event"] == "note_encode_failed"
    assert recs[-1]["action_id"] == "bad"


def test_run_actions_persist(tmp_path: Path):
    run_dir = tmp_path / "runs" / "9"
    run_dir.mkdir(parents=True)
    run = Run(root_dir=run_dir, actions=[ColorizedAction(id="a", color_map_name="xterm")])
    run.add_action(ColorizedAction(id="b", color_map_name="xterm", command=Command.CURRENT))
    save_run(run)

    again = load_run(run_dir)
    assert again.actions == run.actions
    assert [a.id for a in again.get_actions(Command.CURRENT)] == ["b"]


def test_repeated_finalize_keeps_one_current_action(tmp_path: Path):
    xterm = ColorizedAction(id="s1", color_map_name="xterm")
    filler = b"." * 99 + b"\n"
    data = encode_note(xterm).encode("ascii") + b"go\n" + filler * 40
    run = _run_with_log(tmp_path, data, [xterm])

    first = on_finalized(run, _cfg(tmp_path, tail_kb=1))
    second = on_finalized(run, _cfg(tmp_path, tail_kb=2))

    current = run.get_actions(Command.CURRENT)
    assert first is not None and second is not None
    assert first.id != second.id
    assert current == [second]


def test_stale_current_action_dropped_when_nothing_matches(tmp_path: Path):
    xterm = ColorizedAction(id="s1", color_map_name="xterm")
    old = ColorizedAction(id="old-line", color_map_name="xterm", command=Command.CURRENT)
    filler = b"." * 99 + b"\n"
    run = _run_with_log(tmp_path, filler * 40 + encode_note(xterm).encode("ascii") + b"late\n", [xterm, old])

    assert on_finalized(run, _cfg(tmp_path)) is None
    assert run.get_actions(Command.CURRENT) == []
    assert run.actions == [xterm]


def test_action_whose_note_does_not_decode_back_is_excluded(tmp_path: Path):
    logs = tmp_path / "logs"
    init_logger(logs_root=logs)
    try:
        good = ColorizedAction(id="ok", color_map_name="xterm")
        # encodes fine, but decodes with color_map_name="5"
        skewed = ColorizedAction(id="skewed", color_map_name=5)  # type: ignore[arg-type]
        filler = b"." * 99 + b"\n"
        data = encode_note(skewed).encode("ascii") + b"go\n" + filler * 40
        run = _run_with_log(tmp_path, data, [good, skewed])

        assert list(start_actions_by_note([good, skewed]).values()) == [good]
        assert on_finalized(run, _cfg(tmp_path)) is None
    finally:
        reset_logger()

    recs = [json.loads(x) for x in (logs / "listener.log").read_text(encoding="utf-8").splitlines()]
    decode_warnings = [r for r in recs if r["event"] == "note_decode_failed"]
    assert decode_warnings and decode_warnings[-1]["action_id"] == "skewed"
