from __future__ import annotations

import argparse
import json
import sys
from dataclasses import replace
from pathlib import Path

from ansi_shortlog.config import load_config
from ansi_shortlog.listener import on_finalized
from ansi_shortlog.runs import load_run, save_run
from ansi_shortlog.runtime_overrides import effective_config
from ansi_shortlog.utils.logger import get_logger, init_logger


def main(argv: list[str] | None = None) -> int:
    ap = argparse.ArgumentParser(description="Attach the colour map active at the start of a run's shortlog.")
    ap.add_argument("run_dir", help="Run directory holding 'log' and 'actions.json'")
    ap.add_argument("--tail-kb", type=int, default=None, help="Shortlog size in KB (default: CONSOLE_TAIL_KB or 150)")
    ap.add_argument("--no-save", action="store_true", help="Print the result without updating actions.json")
    args = ap.parse_args(argv)

    cfg = effective_config(load_config())
    if args.tail_kb is not None:
        if args.tail_kb < 0:
            ap.error("--tail-kb must be >= 0")
        cfg = replace(cfg, console_tail_kb=args.tail_kb)

    init_logger(logs_root=cfg.logs_root)

    try:
        run = load_run(Path(args.run_dir))
    except (OSError, ValueError) as e:
        lg = get_logger()
        if lg:
            lg.exception(level="ERROR", component="CLI", event="run_load_failed", message=str(e), exc=e, run_dir=args.run_dir)
        print(f"error: {e}", file=sys.stderr)
        return 2

    action = on_finalized(run, cfg)
    if not args.no_save:
        save_run(run)

    out = {
        "run_id": run.run_id,
        "tail_kb": cfg.console_tail_kb,
        "action": action.to_dict() if action is not None else None,
    }
    print(json.dumps(out, ensure_ascii=False, sort_keys=True, indent=2))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
