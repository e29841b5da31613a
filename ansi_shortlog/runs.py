from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from ansi_shortlog.actions import ColorizedAction, Command


ACTIONS_FILE = "actions.json"
LOG_FILE = "log"


def load_json(path: Path) -> Any:
    return json.loads(path.read_text(encoding="utf-8"))


def save_json_atomic(path: Path, obj: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + ".tmp")
    tmp.write_text(json.dumps(obj, ensure_ascii=False, sort_keys=True, indent=2), encoding="utf-8")
    os.replace(tmp, path)


@dataclass
class Run:
    """A finished build: ``<root_dir>/log`` plus the actions recorded against it."""

    root_dir: Path
    actions: list[ColorizedAction] = field(default_factory=list)

    @property
    def run_id(self) -> str:
        return self.root_dir.name

    @property
    def log_file(self) -> Path:
        return self.root_dir / LOG_FILE

    def get_actions(self, command: Command | None = None) -> list[ColorizedAction]:
        if command is None:
            return list(self.actions)
        return [a for a in self.actions if a.command == command]

    def add_action(self, action: ColorizedAction) -> None:
        self.actions.append(action)

    def drop_actions(self, command: Command) -> int:
        kept = [a for a in self.actions if a.command != command]
        dropped = len(self.actions) - len(kept)
        self.actions = kept
        return dropped

    def replace_current(self, action: ColorizedAction) -> None:
        """Keep at most one CURRENT action per run."""
        self.drop_actions(Command.CURRENT)
        self.add_action(action)


def load_run(root_dir: Path) -> Run:
    root_dir = Path(root_dir)
    if not root_dir.is_dir():
        raise FileNotFoundError(f"run directory not found: {root_dir}")
    path = root_dir / ACTIONS_FILE
    actions: list[ColorizedAction] = []
    if path.exists():
        raw = load_json(path)
        if not isinstance(raw, list):
            raise ValueError(f"{path} must hold a JSON list")
        actions = [ColorizedAction.from_dict(d) for d in raw]
    return Run(root_dir=root_dir, actions=actions)


def save_run(run: Run) -> None:
    save_json_atomic(run.root_dir / ACTIONS_FILE, [a.to_dict() for a in run.actions])
