"""Locate the colour-map note that is active where a shortlog begins.

A shortlog shows only the last ``tail_kb`` kilobytes of a console log, so any
START note written earlier is cut away. This module streams the finished log
forward once in fixed-size chunks, remembering the most recent START note, and
stops as soon as the first line at or after ``len(log) - tail_kb * 1024`` has
been read completely. Memory use is bounded by the chunk size plus the length
of that one line.

The scan is a fold: ``scan_step`` takes an immutable ``ScanCursor`` and one
chunk and returns the next cursor (and a result once the boundary line is
complete).

Chunk seams: with ``ScanSettings.straddle_safe`` (the default) the last
``max(len(marker))`` bytes of each chunk are re-examined together with the next
chunk and ``len(eol) - 1`` bytes are held back before the terminator search, so
notes and multi-byte terminators split across two reads are still found. With
``straddle_safe=False`` every chunk is examined on its own, which misses both.
"""
from __future__ import annotations

import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import BinaryIO, Callable, Collection, Iterator, Mapping

from ansi_shortlog.actions import ColorizedAction
from ansi_shortlog.line_identifier import LineIdentifier
from ansi_shortlog.notes import find_preamble, remove_notes
from ansi_shortlog.utils.logger import log_scan


BUFFER_SIZE = 16 * 1024
EOL = os.linesep.encode("ascii")

# the shortlog renderer numbers its first line 1
SHORTLOG_FIRST_LINE_NO = 1

PreambleLocator = Callable[[bytes, int], int]


@dataclass(frozen=True)
class ScanSettings:
    buffer_size: int = BUFFER_SIZE
    eol: bytes = EOL
    straddle_safe: bool = True

    def __post_init__(self) -> None:
        if self.buffer_size < 1:
            raise ValueError("buffer_size must be positive")
        if not self.eol:
            raise ValueError("eol must not be empty")


@dataclass(frozen=True)
class ActionContext:
    """Outcome of one scan: the serialized note active at the boundary line, and that line."""

    serialized_action: str | None = None
    line: str | None = None

    @classmethod
    def empty(cls) -> "ActionContext":
        return cls()

    def is_empty(self) -> bool:
        return self.serialized_action is None and self.line is None


@dataclass(frozen=True)
class ScanCursor:
    bytes_read: int = 0
    marker: str | None = None
    marker_pos: int = -1
    # tail of the previous chunk, re-examined for notes split across reads
    overlap: bytes = b""
    # absolute offset where the boundary line starts, once the target is reached
    line_start: int | None = None
    fragment: bytes = b""
    # possible first bytes of a split terminator
    pending: bytes = b""

    @property
    def line_open(self) -> bool:
        return self.line_start is not None


@dataclass(frozen=True)
class _ScanPlan:
    candidates: tuple[tuple[str, bytes], ...]
    target: int
    eol: bytes
    overlap_len: int
    hold_back: int
    locate: PreambleLocator

    @classmethod
    def build(
        cls,
        markers: Collection[str],
        target: int,
        settings: ScanSettings,
        locate: PreambleLocator = find_preamble,
    ) -> "_ScanPlan":
        candidates = _encode_candidates(markers)
        longest = max((len(raw) for _, raw in candidates), default=0)
        return cls(
            candidates=candidates,
            target=target,
            eol=settings.eol,
            overlap_len=longest if settings.straddle_safe else 0,
            hold_back=len(settings.eol) - 1 if settings.straddle_safe else 0,
            locate=locate,
        )


def _encode_candidates(markers: Collection[str]) -> tuple[tuple[str, bytes], ...]:
    # longest first so a note never loses to a shorter candidate that prefixes it
    uniq = sorted({m for m in markers if m}, key=lambda m: (-len(m), m))
    return tuple((m, m.encode("utf-8")) for m in uniq)


def _find_marker(
    buf: bytes,
    candidates: tuple[tuple[str, bytes], ...],
    start: int,
    locate: PreambleLocator,
) -> tuple[int, str] | None:
    n = len(buf)
    pos = start
    while pos < n:
        pos = locate(buf, pos)
        if pos == -1:
            return None
        for text, raw in candidates:
            if n - pos > len(raw) and buf.startswith(raw, pos):
                return pos, text
        # nested preambles: look again one byte later
        pos += 1
    return None


def find_marker(
    buf: bytes,
    markers: Collection[str],
    start: int = 0,
    locate: PreambleLocator = find_preamble,
) -> tuple[int, str] | None:
    """Earliest ``(offset, marker)`` at a preamble position at or after ``start``.

    A candidate only matches when at least one byte follows it inside ``buf``.
    """
    return _find_marker(buf, _encode_candidates(markers), max(0, start), locate)


def index_of_eol(buf: bytes, after: int, eol: bytes = EOL) -> int:
    return buf.find(eol, max(0, after))


def _scan_markers(cursor: ScanCursor, chunk: bytes, plan: _ScanPlan, limit: int | None) -> tuple[str | None, int, bytes]:
    """Latest note starting no later than ``limit`` in ``overlap + chunk``."""
    marker, marker_pos = cursor.marker, cursor.marker_pos
    if not plan.candidates:
        return marker, marker_pos, b""

    window = cursor.overlap + chunk
    base = cursor.bytes_read - len(cursor.overlap)
    if limit is None or base <= limit:
        pos = 0
        while True:
            hit = _find_marker(window, plan.candidates, pos, plan.locate)
            if hit is None:
                break
            at, text = hit
            absolute = base + at
            if limit is not None and absolute > limit:
                break
            # notes inside the overlap were already seen in the previous step
            if absolute > marker_pos:
                marker, marker_pos = text, absolute
            pos = at + 1

    overlap = window[-plan.overlap_len :] if plan.overlap_len else b""
    return marker, marker_pos, overlap


def scan_step(cursor: ScanCursor, chunk: bytes, plan: _ScanPlan) -> tuple[ScanCursor, ActionContext | None]:
    end = cursor.bytes_read + len(chunk)

    line_start = cursor.line_start
    if line_start is None and end >= plan.target:
        line_start = max(plan.target, cursor.bytes_read)

    marker, marker_pos, overlap = _scan_markers(cursor, chunk, plan, line_start)

    if line_start is None:
        return replace(cursor, bytes_read=end, marker=marker, marker_pos=marker_pos, overlap=overlap), None

    if cursor.line_open:
        data = cursor.pending + chunk
    else:
        data = chunk[line_start - cursor.bytes_read :]

    eol_pos = index_of_eol(data, 0, plan.eol)
    if eol_pos != -1:
        raw_line = cursor.fragment + data[: eol_pos + len(plan.eol)]
        done = replace(
            cursor,
            bytes_read=end,
            marker=marker,
            marker_pos=marker_pos,
            overlap=overlap,
            line_start=line_start,
            fragment=b"",
            pending=b"",
        )
        return done, ActionContext(marker, raw_line.decode("utf-8", errors="replace"))

    # the line continues in the next chunk
    keep = min(plan.hold_back, len(data))
    cut = len(data) - keep
    nxt = replace(
        cursor,
        bytes_read=end,
        marker=marker,
        marker_pos=marker_pos,
        overlap=overlap,
        line_start=line_start,
        fragment=cursor.fragment + data[:cut],
        pending=data[cut:],
    )
    return nxt, None


def _iter_chunks(f: BinaryIO, size: int) -> Iterator[bytes]:
    while True:
        data = f.read(size)
        if not data:
            break
        yield data


def find_start_marker_at(
    log_file: Path,
    serialized_actions: Collection[str],
    tail_kb: int,
    settings: ScanSettings | None = None,
    *,
    locate: PreambleLocator = find_preamble,
) -> ActionContext:
    """Single forward pass over ``log_file``; never raises on I/O errors."""
    settings = settings or ScanSettings()
    path = Path(log_file)
    try:
        with path.open("rb") as f:
            size = os.fstat(f.fileno()).st_size
            plan = _ScanPlan.build(serialized_actions, size - int(tail_kb) * 1024, settings, locate)
            cursor = ScanCursor()
            for chunk in _iter_chunks(f, settings.buffer_size):
                cursor, found = scan_step(cursor, chunk, plan)
                if found is not None:
                    log_scan(
                        level="DEBUG",
                        event="boundary_line_found",
                        message="shortlog boundary line located",
                        path=str(path),
                        target=plan.target,
                        bytes_read=cursor.bytes_read,
                        marker_pos=cursor.marker_pos,
                    )
                    return found
    except OSError as e:
        log_scan(
            level="WARNING",
            event="scan_io_error",
            message=f"Cannot search log for actions: {e}",
            path=str(path),
        )
        return ActionContext.empty()

    log_scan(level="DEBUG", event="boundary_line_missing", message="no complete line at or after shortlog start", path=str(path))
    return ActionContext.empty()


class ShortlogActionCreator:
    def __init__(self, line_identifier: LineIdentifier, settings: ScanSettings | None = None):
        self.line_identifier = line_identifier
        self.settings = settings or ScanSettings()

    def create_action_for_shortlog(
        self,
        log_file: Path,
        start_actions: Mapping[str, ColorizedAction],
        begin_from_end_kb: int,
    ) -> ColorizedAction | None:
        ctx = find_start_marker_at(log_file, start_actions.keys(), begin_from_end_kb, self.settings)
        if ctx.is_empty() or ctx.serialized_action is None or ctx.line is None:
            return None
        start = start_actions.get(ctx.serialized_action)
        if start is None:
            return None
        line_id = self.line_identifier.hash(remove_notes(ctx.line), SHORTLOG_FIRST_LINE_NO)
        return start.for_line(line_id)
