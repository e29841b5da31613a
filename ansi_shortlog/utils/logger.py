from __future__ import annotations

import gzip
import json
import os
import sys
import traceback
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any


LEVELS = {"DEBUG": 10, "INFO": 20, "WARNING": 30, "ERROR": 40, "CRITICAL": 50}


def _utc_now() -> datetime:
    return datetime.now(timezone.utc).replace(microsecond=0)


def _ts() -> str:
    return _utc_now().isoformat().replace("+00:00", "Z")


def _level_num(level: str) -> int:
    return LEVELS.get(level.upper(), 20)


def _safe_json(obj: dict[str, Any]) -> str:
    return json.dumps(obj, ensure_ascii=False, sort_keys=True, default=str)


@dataclass
class _RotatingFile:
    path: Path
    max_bytes: int = 10 * 1024 * 1024
    keep_days: int = 30

    def _should_rotate(self) -> bool:
        if not self.path.exists():
            return False
        try:
            if self.path.stat().st_size >= self.max_bytes:
                return True
        except OSError:
            pass
        # daily rotation: rotate if file mtime date != today
        try:
            m = datetime.fromtimestamp(self.path.stat().st_mtime, tz=timezone.utc).date()
            if m != _utc_now().date():
                return True
        except OSError:
            pass
        return False

    def _rotate(self) -> None:
        if not self.path.exists():
            return
        ts = _utc_now().strftime("%Y%m%d-%H%M%S")
        rotated = self.path.with_suffix(self.path.suffix + f".{ts}")
        try:
            self.path.rename(rotated)
        except OSError:
            return

        gz_path = rotated.with_suffix(rotated.suffix + ".gz")
        try:
            with rotated.open("rb") as f_in, gzip.open(gz_path, "wb") as f_out:
                f_out.writelines(f_in)
            rotated.unlink(missing_ok=True)
        except OSError:
            # leave uncompressed if gzip fails
            pass

        self._cleanup()

    def _cleanup(self) -> None:
        cutoff = _utc_now() - timedelta(days=int(self.keep_days))
        for p in self.path.parent.glob(self.path.name + ".*.gz"):
            try:
                m = datetime.fromtimestamp(p.stat().st_mtime, tz=timezone.utc)
                if m < cutoff:
                    p.unlink(missing_ok=True)
            except OSError:
                continue

    def write_line(self, line: str) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        if self._should_rotate():
            self._rotate()
        with self.path.open("a", encoding="utf-8") as f:
            f.write(line)
            f.write("\n")


class StructuredLogger:
    """JSON-lines logger.

    Every record lands in ``system.log``; ``file_key`` routes a copy to a
    component file and WARNING and above are also copied to ``errors.log``.
    Without a ``logs_root`` records are written to stderr instead.
    """

    FILE_KEYS = ("system", "errors", "scan", "listener", "api")

    def __init__(self, *, logs_root: Path | None, min_level: str = "INFO"):
        self.logs_root = logs_root
        self.min_level = min_level.upper()
        self._files: dict[str, _RotatingFile] = {}
        if logs_root is not None:
            self._files = {k: _RotatingFile(logs_root / f"{k}.log") for k in self.FILE_KEYS}

    def log(
        self,
        *,
        level: str,
        component: str,
        event: str,
        message: str,
        file_key: str = "system",
        details: dict[str, Any] | None = None,
        **fields: Any,
    ) -> None:
        lvl = level.upper()
        if _level_num(lvl) < _level_num(self.min_level):
            return

        rec: dict[str, Any] = {
            "timestamp": _ts(),
            "level": lvl,
            "component": component,
            "event": event,
            "message": message,
        }
        if details is not None:
            rec["details"] = details
        if fields:
            rec.update(fields)

        line = _safe_json(rec)

        try:
            if not self._files:
                print(line, file=sys.stderr)
                return

            self._files["system"].write_line(line)
            if file_key in self._files and file_key not in {"system", "errors"}:
                self._files[file_key].write_line(line)
            if _level_num(lvl) >= _level_num("WARNING"):
                self._files["errors"].write_line(line)
        except OSError:
            # never crash on logging
            return

    def exception(
        self,
        *,
        level: str,
        component: str,
        event: str,
        message: str,
        file_key: str = "errors",
        exc: BaseException | None = None,
        **fields: Any,
    ) -> None:
        tb = traceback.format_exc() if exc is None else "".join(traceback.format_exception(exc))
        self.log(
            level=level,
            component=component,
            event=event,
            message=message,
            file_key=file_key,
            details={"traceback": tb},
            **fields,
        )


_LOGGER: StructuredLogger | None = None


def init_logger(*, logs_root: Path | None) -> StructuredLogger:
    global _LOGGER
    min_level = os.getenv("LOG_LEVEL", "INFO").strip().upper()
    _LOGGER = StructuredLogger(logs_root=logs_root, min_level=min_level)
    return _LOGGER


def get_logger() -> StructuredLogger | None:
    return _LOGGER


def reset_logger() -> None:
    global _LOGGER
    _LOGGER = None


def log_scan(*, level: str, event: str, message: str, **fields: Any) -> None:
    lg = _LOGGER or init_logger(logs_root=None)
    lg.log(level=level, component="Scanner", event=event, message=message, file_key="scan", **fields)


def log_listener(*, level: str, event: str, message: str, **fields: Any) -> None:
    lg = _LOGGER or init_logger(logs_root=None)
    lg.log(level=level, component="Listener", event=event, message=message, file_key="listener", **fields)


def log_api(*, level: str, event: str, message: str, **fields: Any) -> None:
    lg = _LOGGER or init_logger(logs_root=None)
    lg.log(level=level, component="DashboardAPI", event=event, message=message, file_key="api", **fields)
