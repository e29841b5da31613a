from __future__ import annotations

from typing import Iterable

from ansi_shortlog.actions import ColorizedAction, Command
from ansi_shortlog.config import Config
from ansi_shortlog.line_identifier import LineIdentifier
from ansi_shortlog.notes import decode_note, encode_note
from ansi_shortlog.runs import Run
from ansi_shortlog.scanner import ShortlogActionCreator
from ansi_shortlog.utils.logger import log_listener


def start_actions_by_note(actions: Iterable[ColorizedAction]) -> dict[str, ColorizedAction]:
    """Map each START action to the note it leaves in the log.

    Actions whose note cannot be encoded, or does not decode back to the
    same action, are left out; the rest are still usable.
    """
    out: dict[str, ColorizedAction] = {}
    for a in actions:
        if a.command != Command.START:
            continue
        try:
            note = encode_note(a)
        except ValueError as e:
            log_listener(
                level="WARNING",
                event="note_encode_failed",
                message=f"Will not be able to identify all ColorizedActions: {e}",
                action_id=a.id,
            )
            continue
        if decode_note(note) != a:
            log_listener(
                level="WARNING",
                event="note_decode_failed",
                message="Will not be able to identify all ColorizedActions: note does not decode to its action",
                action_id=a.id,
            )
            continue
        out[note] = a
    return out


def on_finalized(run: Run, cfg: Config) -> ColorizedAction | None:
    """Attach the colour map active at the shortlog start to ``run``.

    Any CURRENT action left by an earlier call is dropped first, so a run
    carries at most one.
    """
    stale = run.drop_actions(Command.CURRENT)
    if stale:
        log_listener(level="INFO", event="shortlog_action_replaced", message="dropped earlier shortlog action", run_id=run.run_id, dropped=stale)

    start_actions = start_actions_by_note(run.get_actions(Command.START))
    if not start_actions:
        return None

    log_file = run.log_file
    if not log_file.is_file():
        log_listener(level="INFO", event="log_missing", message="run has no log file", run_id=run.run_id)
        return None

    creator = ShortlogActionCreator(LineIdentifier(), cfg.scan_settings())
    action = creator.create_action_for_shortlog(log_file, start_actions, cfg.console_tail_kb)
    if action is None:
        log_listener(level="INFO", event="shortlog_action_none", message="no colour map active at shortlog start", run_id=run.run_id)
        return None

    run.replace_current(action)
    log_listener(
        level="INFO",
        event="shortlog_action_added",
        message="shortlog action attached",
        run_id=run.run_id,
        color_map_name=action.color_map_name,
        line_id=action.id,
        tail_kb=cfg.console_tail_kb,
    )
    return action
