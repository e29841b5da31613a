from __future__ import annotations

import sys
from pathlib import Path

import pytest

# Ensure project root is on sys.path so `import ansi_shortlog` works without an install.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


@pytest.fixture(autouse=True)
def _quiet_log_level(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("LOG_LEVEL", "INFO")
