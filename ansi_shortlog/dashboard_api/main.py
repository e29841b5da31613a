from __future__ import annotations

from dataclasses import asdict
from pathlib import Path
from typing import Any

from fastapi import FastAPI, HTTPException, Path as PathParam, Query

from ansi_shortlog.actions import Command
from ansi_shortlog.config import EOL_CHOICES, Config, load_config
from ansi_shortlog.line_identifier import LineIdentifier
from ansi_shortlog.listener import on_finalized
from ansi_shortlog.notes import remove_notes
from ansi_shortlog.runs import Run, load_run, save_run
from ansi_shortlog.runtime_overrides import (
    allowlist_public_spec,
    apply_overrides,
    load_overrides_file,
    validate_and_normalize_overrides,
    write_overrides_file_atomic,
)
from ansi_shortlog.scanner import SHORTLOG_FIRST_LINE_NO
from ansi_shortlog.utils.logger import init_logger, log_api
from ansi_shortlog.utils_web.tail import first_line, tail_bytes, tail_jsonl


RUN_ID_PATTERN = r"^[A-Za-z0-9][A-Za-z0-9._-]{0,127}$"


def _active_color_map(run: Run, head: bytes | None) -> str | None:
    """Colour map the renderer restores for the first shortlog line, if any."""
    if head is None:
        return None
    line_id = LineIdentifier().hash(remove_notes(head.decode("utf-8", errors="replace")), SHORTLOG_FIRST_LINE_NO)
    for a in run.get_actions(Command.CURRENT):
        if a.id == line_id:
            return a.color_map_name
    return None


def create_app() -> FastAPI:
    cfg = load_config()

    data_root = Path(cfg.data_root)
    runs_root = cfg.runs_root
    logs_root = cfg.logs_root
    overrides_path = cfg.overrides_path

    init_logger(logs_root=logs_root)

    app = FastAPI(title="ansi-shortlog")

    def _effective() -> Config:
        return apply_overrides(cfg, load_overrides_file(overrides_path))

    def _load(run_id: str) -> Run:
        try:
            return load_run(runs_root / run_id)
        except FileNotFoundError:
            raise HTTPException(status_code=404, detail="run not found")
        except ValueError as e:
            raise HTTPException(status_code=500, detail=f"run actions unreadable: {e}")

    @app.get("/api/health")
    def health() -> dict[str, Any]:
        return {"ok": True, "data_root": str(data_root)}

    @app.get("/api/runs/{run_id}/shortlog")
    def shortlog(
        run_id: str = PathParam(..., pattern=RUN_ID_PATTERN),
        tail_kb: int | None = Query(None, ge=0),
    ) -> dict[str, Any]:
        eff = _effective()
        kb = eff.console_tail_kb if tail_kb is None else int(tail_kb)
        run = _load(run_id)
        if not run.log_file.is_file():
            raise HTTPException(status_code=404, detail="run has no log")

        try:
            offset, data = tail_bytes(run.log_file, kb)
        except OSError as e:
            log_api(level="WARNING", event="shortlog_read_failed", message=str(e), run_id=run_id)
            raise HTTPException(status_code=503, detail="log unreadable")

        head = first_line(data, EOL_CHOICES[eff.eol])
        return {
            "run_id": run_id,
            "tail_kb": kb,
            "offset": offset,
            "truncated": offset > 0,
            "color_map": _active_color_map(run, head),
            "text": remove_notes(data.decode("utf-8", errors="replace")),
        }

    @app.post("/api/runs/{run_id}/shortlog/annotate")
    def annotate(run_id: str = PathParam(..., pattern=RUN_ID_PATTERN)) -> dict[str, Any]:
        eff = _effective()
        run = _load(run_id)
        action = on_finalized(run, eff)
        save_run(run)
        log_api(level="INFO", event="annotate", message="shortlog annotation requested", run_id=run_id, attached=action is not None)
        return {
            "run_id": run_id,
            "tail_kb": eff.console_tail_kb,
            "action": action.to_dict() if action is not None else None,
        }

    @app.get("/api/logs/tail")
    def logs_tail(
        name: str = Query(..., pattern="^(system|errors|scan|listener|api)$"),
        limit: int = Query(200, ge=10, le=2000),
    ) -> dict[str, Any]:
        path = logs_root / f"{name}.log"
        return {"name": name, "limit": limit, "lines": tail_jsonl(path, limit=limit)}

    @app.get("/api/config")
    def get_config() -> dict[str, Any]:
        overrides = load_overrides_file(overrides_path)
        effective = apply_overrides(cfg, overrides)
        return {
            "base": asdict(cfg),
            "overrides": overrides,
            "effective": asdict(effective),
            "allowlist": allowlist_public_spec(),
            "overrides_path": str(overrides_path),
        }

    @app.patch("/api/config")
    def patch_config(patch: dict[str, Any]) -> dict[str, Any]:
        current = load_overrides_file(overrides_path)
        try:
            norm_patch = validate_and_normalize_overrides(patch)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))

        merged = dict(current)
        for k, v in norm_patch.items():
            if v is None:
                merged.pop(k, None)
            else:
                merged[k] = v

        write_overrides_file_atomic(overrides_path, merged)
        log_api(level="INFO", event="config_patched", message="runtime overrides updated", keys=sorted(norm_patch))

        effective = apply_overrides(cfg, merged)
        return {
            "overrides": merged,
            "effective": asdict(effective),
            "allowlist": allowlist_public_spec(),
            "written_to": str(overrides_path),
        }

    return app
