from __future__ import annotations

import json
import os
from dataclasses import replace
from pathlib import Path
from typing import Any

from ansi_shortlog.config import EOL_CHOICES, Config
from ansi_shortlog.utils.logger import get_logger


ALLOWLIST: dict[str, Any] = {
    # Shortlog window
    "CONSOLE_TAIL_KB": {"type": "int", "min": 0, "max": 1024 * 1024},

    # Scanner tuning
    "SHORTLOG_BUFFER_SIZE": {"type": "int", "min": 16, "max": 64 * 1024 * 1024},
    "SHORTLOG_STRADDLE_SAFE": {"type": "bool"},
    "SHORTLOG_EOL": {"type": "enum", "values": sorted(EOL_CHOICES)},
}


def _coerce_bool(v: Any) -> bool:
    if isinstance(v, bool):
        return v
    if isinstance(v, (int, float)):
        return bool(v)
    if isinstance(v, str):
        return v.strip().lower() in {"1", "true", "yes", "y", "on"}
    raise ValueError("invalid bool")


def validate_and_normalize_overrides(incoming: dict[str, Any]) -> dict[str, Any]:
    if not isinstance(incoming, dict):
        raise ValueError("overrides must be a JSON object")

    normalized: dict[str, Any] = {}
    for k, v in incoming.items():
        if k not in ALLOWLIST:
            raise ValueError(f"override key not allowed: {k}")

        if v is None:
            normalized[k] = None
            continue

        spec = ALLOWLIST[k]
        t = spec.get("type")
        try:
            if t == "enum":
                if not isinstance(v, str):
                    raise ValueError("must be string")
                vv = v.strip().lower()
                if vv not in set(spec.get("values") or []):
                    raise ValueError("invalid enum value")
                normalized[k] = vv
            elif t == "int":
                if isinstance(v, bool):
                    raise ValueError("must be integer")
                vv = int(v)
                if "min" in spec and vv < int(spec["min"]):
                    raise ValueError("below min")
                if "max" in spec and vv > int(spec["max"]):
                    raise ValueError("above max")
                normalized[k] = vv
            elif t == "bool":
                normalized[k] = _coerce_bool(v)
            else:
                raise ValueError("unknown allowlist spec")
        except (TypeError, ValueError) as e:
            raise ValueError(f"invalid value for {k}: {e}")

    return normalized


def load_overrides_file(path: Path) -> dict[str, Any]:
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError:
        return {}

    try:
        obj = json.loads(raw)
    except ValueError:
        lg = get_logger()
        if lg:
            lg.exception(
                level="WARNING",
                component="Config",
                event="runtime_overrides_invalid_json",
                message="runtime overrides file invalid JSON; ignoring",
                file_key="system",
                path=str(path),
            )
        return {}

    if not isinstance(obj, dict):
        return {}

    try:
        norm = validate_and_normalize_overrides(obj)
    except ValueError as e:
        lg = get_logger()
        if lg:
            lg.exception(
                level="WARNING",
                component="Config",
                event="runtime_overrides_invalid",
                message="runtime overrides invalid; ignoring",
                file_key="system",
                path=str(path),
                error=str(e),
            )
        return {}

    return {k: v for k, v in norm.items() if v is not None}


def write_overrides_file_atomic(path: Path, overrides: dict[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + ".tmp")
    tmp.write_text(json.dumps(overrides, ensure_ascii=False, sort_keys=True, indent=2) + "\n", encoding="utf-8")
    os.replace(tmp, path)


def apply_overrides(base_cfg: Config, overrides: dict[str, Any]) -> Config:
    fields: dict[str, Any] = {}

    if "CONSOLE_TAIL_KB" in overrides:
        fields["console_tail_kb"] = int(overrides["CONSOLE_TAIL_KB"])
    if "SHORTLOG_BUFFER_SIZE" in overrides:
        fields["buffer_size"] = int(overrides["SHORTLOG_BUFFER_SIZE"])
    if "SHORTLOG_STRADDLE_SAFE" in overrides:
        fields["straddle_safe"] = bool(overrides["SHORTLOG_STRADDLE_SAFE"])
    if "SHORTLOG_EOL" in overrides:
        fields["eol"] = str(overrides["SHORTLOG_EOL"]).strip().lower()

    if not fields:
        return base_cfg

    return replace(base_cfg, **fields)


def effective_config(base_cfg: Config) -> Config:
    return apply_overrides(base_cfg, load_overrides_file(base_cfg.overrides_path))


def allowlist_public_spec() -> dict[str, Any]:
    return ALLOWLIST
