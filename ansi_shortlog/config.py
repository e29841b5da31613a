from __future__ import annotations

from dataclasses import dataclass
import os
from pathlib import Path

from dotenv import load_dotenv

from ansi_shortlog.scanner import ScanSettings


CONSOLE_TAIL_DEFAULT_KB = 150
BUFFER_SIZE_DEFAULT = 16 * 1024

EOL_CHOICES = {
    "lf": b"\n",
    "crlf": b"\r\n",
    "native": os.linesep.encode("ascii"),
}


@dataclass(frozen=True)
class Config:
    data_root: str

    # shortlog window (hudson.consoleTailKB equivalent)
    console_tail_kb: int = CONSOLE_TAIL_DEFAULT_KB

    # scanner tuning
    buffer_size: int = BUFFER_SIZE_DEFAULT
    eol: str = "native"  # lf|crlf|native
    straddle_safe: bool = True

    log_level: str = "INFO"

    @property
    def runs_root(self) -> Path:
        return Path(self.data_root) / "runs"

    @property
    def logs_root(self) -> Path:
        return Path(self.data_root) / "logs"

    @property
    def overrides_path(self) -> Path:
        return Path(self.data_root) / "state" / "runtime_overrides.json"

    def scan_settings(self) -> ScanSettings:
        return ScanSettings(
            buffer_size=self.buffer_size,
            eol=EOL_CHOICES[self.eol],
            straddle_safe=self.straddle_safe,
        )


def _get_bool(name: str, default: bool) -> bool:
    v = os.getenv(name)
    if v is None:
        return default
    return v.strip().lower() in {"1", "true", "yes", "y", "on"}


def _get_int(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise RuntimeError(f"{name} must be an integer (got {raw!r})")


def load_config() -> Config:
    load_dotenv(override=False)

    data_root = os.getenv("DATA_ROOT", "./data").strip()
    console_tail_kb = _get_int("CONSOLE_TAIL_KB", CONSOLE_TAIL_DEFAULT_KB)
    buffer_size = _get_int("SHORTLOG_BUFFER_SIZE", BUFFER_SIZE_DEFAULT)
    eol = os.getenv("SHORTLOG_EOL", "native").strip().lower()

    if console_tail_kb < 0:
        raise RuntimeError(f"CONSOLE_TAIL_KB must be >= 0 (got {console_tail_kb})")
    if buffer_size < 16:
        raise RuntimeError(f"SHORTLOG_BUFFER_SIZE must be >= 16 (got {buffer_size})")
    if eol not in EOL_CHOICES:
        raise RuntimeError(f"SHORTLOG_EOL must be one of {sorted(EOL_CHOICES)} (got {eol!r})")

    return Config(
        data_root=data_root,
        console_tail_kb=console_tail_kb,
        buffer_size=buffer_size,
        eol=eol,
        straddle_safe=_get_bool("SHORTLOG_STRADDLE_SAFE", True),
        log_level=os.getenv("LOG_LEVEL", "INFO").strip().upper(),
    )
