from __future__ import annotations

from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any


class Command(str, Enum):
    START = "start"
    STOP = "stop"
    # attached to the first line of a shortlog to restore the active colour map
    CURRENT = "current"


@dataclass(frozen=True)
class ColorizedAction:
    """A colour-map switch recorded against one line of a run's console log."""

    id: str
    color_map_name: str
    command: Command = Command.START

    def for_line(self, line_id: str) -> "ColorizedAction":
        return ColorizedAction(id=line_id, color_map_name=self.color_map_name, command=Command.CURRENT)

    def to_dict(self) -> dict[str, Any]:
        d = asdict(self)
        d["command"] = self.command.value
        return d

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> "ColorizedAction":
        return cls(
            id=str(d["id"]),
            color_map_name=str(d["color_map_name"]),
            command=Command(str(d.get("command", Command.START.value)).lower()),
        )
