"""In-band console notes.

A note is an action serialized between a preamble and a postamble so that it
survives inside a plain text log::

    ESC[8mha:<base64(gzip(json))>ESC[0m

The hidden SGR 8 (conceal) sequence keeps notes invisible in terminals.
"""
from __future__ import annotations

import base64
import binascii
import gzip
import json
import re
import zlib
from typing import Any

from ansi_shortlog.actions import ColorizedAction


PREAMBLE = b"\x1b[8mha:"
POSTAMBLE = b"\x1b[0m"

PREAMBLE_STR = PREAMBLE.decode("ascii")
POSTAMBLE_STR = POSTAMBLE.decode("ascii")

_NOTE_RE = re.compile(re.escape(PREAMBLE_STR) + ".*?" + re.escape(POSTAMBLE_STR), re.DOTALL)


def find_preamble(buf: bytes, start: int = 0) -> int:
    """Offset of the next preamble at or after ``start``, -1 if there is none."""
    return buf.find(PREAMBLE, start)


def encode_note(action: ColorizedAction) -> str:
    try:
        payload: dict[str, Any] = action.to_dict()
        raw = json.dumps(payload, ensure_ascii=True, sort_keys=True, separators=(",", ":")).encode("ascii")
    except (TypeError, AttributeError) as e:
        raise ValueError(f"action not serializable: {e}")
    # mtime=0 keeps the encoding stable so the same action always yields the same bytes
    body = base64.b64encode(gzip.compress(raw, mtime=0)).decode("ascii")
    return PREAMBLE_STR + body + POSTAMBLE_STR


def decode_note(note: str) -> ColorizedAction | None:
    if not (note.startswith(PREAMBLE_STR) and note.endswith(POSTAMBLE_STR)):
        return None
    body = note[len(PREAMBLE_STR) : len(note) - len(POSTAMBLE_STR)]
    try:
        raw = gzip.decompress(base64.b64decode(body, validate=True))
        obj = json.loads(raw.decode("utf-8"))
        return ColorizedAction.from_dict(obj)
    except (binascii.Error, zlib.error, OSError, EOFError, ValueError, KeyError, TypeError):
        return None


def remove_notes(text: str) -> str:
    return _NOTE_RE.sub("", text)
