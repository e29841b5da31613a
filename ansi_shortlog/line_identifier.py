from __future__ import annotations

from hashlib import sha256


class LineIdentifier:
    """Keys actions to console lines by content and line number."""

    def hash(self, line_content: str, line_no: int) -> str:
        h = sha256()
        h.update(str(int(line_no)).encode("ascii"))
        h.update(b"\x00")
        h.update(line_content.encode("utf-8"))
        return h.hexdigest()
