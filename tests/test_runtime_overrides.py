from __future__ import annotations

from pathlib import Path

import pytest

from ansi_shortlog.config import Config
from ansi_shortlog.runtime_overrides import (
    apply_overrides,
    effective_config,
    load_overrides_file,
    validate_and_normalize_overrides,
    write_overrides_file_atomic,
)


def test_validate_rejects_unknown_key():
    with pytest.raises(ValueError):
        validate_and_normalize_overrides({"DATA_ROOT": "/tmp"})


def test_validate_eol_enum():
    ok = validate_and_normalize_overrides({"SHORTLOG_EOL": "CRLF"})
    assert ok["SHORTLOG_EOL"] == "crlf"

    with pytest.raises(ValueError):
        validate_and_normalize_overrides({"SHORTLOG_EOL": "cr"})


def test_validate_int_bounds():
    assert validate_and_normalize_overrides({"CONSOLE_TAIL_KB": "20"})["CONSOLE_TAIL_KB"] == 20
    with pytest.raises(ValueError):
        validate_and_normalize_overrides({"CONSOLE_TAIL_KB": -5})
    with pytest.raises(ValueError):
        validate_and_normalize_overrides({"SHORTLOG_BUFFER_SIZE": True})


def test_validate_null_removes():
    ok = validate_and_normalize_overrides({"CONSOLE_TAIL_KB": None})
    assert ok["CONSOLE_TAIL_KB"] is None


def test_apply_overrides_maps_fields():
    cfg = Config(data_root="/tmp/x")
    eff = apply_overrides(cfg, {"CONSOLE_TAIL_KB": 4, "SHORTLOG_STRADDLE_SAFE": False, "SHORTLOG_EOL": "lf"})
    assert eff.console_tail_kb == 4
    assert eff.straddle_safe is False
    assert eff.scan_settings().eol == b"\n"
    assert apply_overrides(cfg, {}) is cfg


def test_overrides_file_roundtrip_and_bad_files(tmp_path: Path):
    cfg = Config(data_root=str(tmp_path))
    write_overrides_file_atomic(cfg.overrides_path, {"CONSOLE_TAIL_KB": 9})
    assert effective_config(cfg).console_tail_kb == 9

    cfg.overrides_path.write_text("{not json", encoding="utf-8")
    assert load_overrides_file(cfg.overrides_path) == {}

    cfg.overrides_path.write_text('{"NOPE": 1}', encoding="utf-8")
    assert load_overrides_file(cfg.overrides_path) == {}

    assert load_overrides_file(tmp_path / "missing.json") == {}
