from __future__ import annotations

import argparse
import hashlib
import json
import logging
import os
import sys
import time
from collections.abc import Callable, Mapping, Sequence
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, cast

import pandas as pd
from jsonschema import ValidationError

from pipeline.ingest.questions import (
    filter_questions,
    frame_to_records,
    load_question_frame,
    normalize_questions,
    question_from_record,
)
from pipeline.io.files import ensure_dir, sha256_of_path, write_json, write_parquet
from pipeline.io.validate import load_schema, validate_obj
from validators import Rules, ValidationResult, validate_selection

from .knapsack import ensure_within_budget
from .types import (
    DEFAULT_MAX_CELLS,
    DIFFICULTIES,
    Constraints,
    ErrorCodes,
    OptimizeResult,
    OptimizerError,
    Question,
)

# Resolve repo root (two levels up from this file) and schemas root
REPO_ROOT = Path(__file__).resolve().parents[2]
SCHEMAS_ROOT = REPO_ROOT / "pipeline" / "schemas"

logger = logging.getLogger("processes.optimizer")

RunOptimizerFn = Callable[[Sequence[Question], int], OptimizeResult]

KNOWN_CONFIG_KEYS = {
    "total_time_limit",
    "quiz_id",
    "difficulty",
    "category",
    "max_cells",
}


def _utc_now_iso() -> str:
    # Millisecond precision per schema pattern
    now = datetime.now(timezone.utc)
    ms = int(now.microsecond / 1000)
    return f"{now.strftime('%Y-%m-%dT%H:%M:%S')}.{ms:03d}Z"


def _load_optimizer() -> RunOptimizerFn:
    """Resolve the solver implementation.

    ``OPTIMIZER_IMPL=module:function`` overrides the built-in DP solver.
    Tests can monkeypatch this function.
    """
    override = os.environ.get("OPTIMIZER_IMPL")
    if override:
        mod_name, _, fn_name = override.partition(":")
        mod = __import__(mod_name, fromlist=[fn_name or "optimize_questions"])
        return cast(RunOptimizerFn, getattr(mod, fn_name or "optimize_questions"))

    from .knapsack import optimize_questions

    return optimize_questions


def _coerce_scalar(val: str) -> int | float | bool | str:
    lower = val.lower()
    if lower in ("true", "false"):
        return lower == "true"
    try:
        if "." in val:
            return float(val)
        return int(val)
    except ValueError:
        return val


def _parse_kv(inline_kv: Sequence[str] | None) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for item in inline_kv or ():
        if "=" not in item:
            continue
        k, v = item.split("=", 1)
        out[k.strip()] = _coerce_scalar(v.strip())
    return out


def load_config(
    config_path: Path | None, inline_kv: Sequence[str] | None = None
) -> dict[str, Any]:
    cfg: dict[str, Any] = {}
    if config_path:
        text = config_path.read_text(encoding="utf-8")
        if config_path.suffix.lower() in (".yaml", ".yml"):
            import yaml  # lazy

            cfg = dict(yaml.safe_load(text) or {})
        else:
            cfg = dict(json.loads(text))
    cfg.update(_parse_kv(inline_kv))
    return cfg


def _positive_int(config: Mapping[str, Any], key: str) -> int:
    val = config.get(key)
    if isinstance(val, bool) or not isinstance(val, int) or val <= 0:
        raise OptimizerError(
            ErrorCodes.CONFIG_ERROR,
            f"{key} must be a positive integer, got {val!r}",
            details={"key": key},
        )
    return val


def map_config_to_constraints(config: Mapping[str, Any]) -> Constraints:
    """Translate user config to solver constraints.

    ``total_time_limit`` is required; unknown keys are ignored here and
    reported by the CLI in verbose mode.
    """
    total_time_limit = _positive_int(config, "total_time_limit")
    max_cells = (
        _positive_int(config, "max_cells") if "max_cells" in config else DEFAULT_MAX_CELLS
    )
    difficulty = config.get("difficulty")
    if difficulty is not None and difficulty not in DIFFICULTIES:
        raise OptimizerError(
            ErrorCodes.CONFIG_ERROR,
            f"difficulty must be one of {list(DIFFICULTIES)}, got {difficulty!r}",
            details={"key": "difficulty"},
        )
    category = config.get("category")
    quiz_id = config.get("quiz_id")
    return Constraints(
        total_time_limit=total_time_limit,
        quiz_id=None if quiz_id is None else str(quiz_id),
        difficulty=difficulty,
        category=None if category is None else str(category),
        max_cells=max_cells,
    )


def _validate_selection_or_raise(
    result: OptimizeResult, pool: Sequence[Question], time_limit: int
) -> ValidationResult:
    """Validate a selection using the shared validator and raise on error."""
    check = validate_selection(result, pool, Rules(total_time_limit=time_limit))
    if not check.valid:
        reasons_str = ", ".join([r.value for r in check.reasons])
        raise ValueError(f"Invalid selection: {reasons_str}")
    return check


def _build_selection_df(
    run_id: str, result: OptimizeResult, pool: Sequence[Question]
) -> pd.DataFrame:
    rows: list[dict[str, Any]] = []
    it = iter(enumerate(pool))
    for rank, q in enumerate(result.selected_questions, start=1):
        # position in the candidate pool; selection is a subsequence of it
        position = next(i for i, p in it if p == q)
        rows.append(
            {
                "run_id": run_id,
                "rank": rank,
                "position": position,
                "question_id": q.id,
                "time_required": int(q.time_required),
                "score": float(q.score),
                "difficulty": q.difficulty,
                "category": q.category,
            }
        )
    columns = [
        "run_id",
        "rank",
        "position",
        "question_id",
        "time_required",
        "score",
        "difficulty",
        "category",
    ]
    return pd.DataFrame(rows, columns=columns)


def _schema_version(schemas_root: Path, name: str) -> str:
    schema = load_schema(schemas_root / f"{name}.schema.yaml")
    return str(schema.get("version", "0.0.0"))


def run_adapter(
    *,
    questions_path: Path,
    config_path: Path | None,
    config_kv: Sequence[str] | None,
    out_root: Path,
    tag: str | None = None,
    schemas_root: Path | None = None,
) -> dict[str, Any]:
    t0 = time.time()
    created_ts = _utc_now_iso()
    schemas_root = schemas_root or SCHEMAS_ROOT

    cfg = load_config(config_path, config_kv)
    constraints = map_config_to_constraints(cfg)

    bank_df = normalize_questions(load_question_frame(questions_path))
    pool_df = filter_questions(
        bank_df,
        quiz_id=constraints.quiz_id,
        difficulty=constraints.difficulty,
        category=constraints.category,
    )

    # Reject malformed rows before the solver sees them
    question_schema = load_schema(schemas_root / "question.schema.yaml")
    records = frame_to_records(pool_df)
    for rec in records:
        validate_obj(question_schema, rec, schemas_root=schemas_root)
    pool = [question_from_record(r) for r in records]

    ensure_within_budget(len(pool), constraints.total_time_limit, constraints.max_cells)

    run_opt = _load_optimizer()
    result = run_opt(pool, constraints.total_time_limit)
    _validate_selection_or_raise(result, pool, constraints.total_time_limit)

    # Portable run_id: YYYYMMDD_HHMMSS_<shorthash>
    bank_sha = sha256_of_path(questions_path)
    cfg_json = json.dumps(cfg, sort_keys=True, separators=(",", ":"))
    cfg_sha = hashlib.sha256(cfg_json.encode("utf-8")).hexdigest()
    ts = datetime.now(timezone.utc)
    short_hash = hashlib.sha256(f"{bank_sha}|{cfg_sha}".encode()).hexdigest()[:8]
    run_id = f"{ts.strftime('%Y%m%d_%H%M%S')}_{short_hash}"

    run_dir = out_root / "runs" / "optimizer" / run_id
    selection_path = run_dir / "artifacts" / "selection.parquet"
    manifest_path = run_dir / "manifest.json"

    summary = {
        "run_id": run_id,
        "total_time_limit": constraints.total_time_limit,
        "candidate_count": len(pool),
        "selected_question_ids": list(result.selected_question_ids),
        "total_score": result.total_score,
        "total_time_used": int(result.total_time_used),
    }

    inputs_list: list[dict[str, Any]] = [
        {"path": str(questions_path), "content_sha256": bank_sha, "role": "questions"}
    ]
    if config_path is not None and config_path.exists():
        inputs_list.append(
            {
                "path": str(config_path),
                "content_sha256": sha256_of_path(config_path),
                "role": "config",
            }
        )
    if config_kv:
        kv_json = json.dumps(_parse_kv(config_kv), sort_keys=True, separators=(",", ":"))
        inputs_list.append(
            {
                "path": "inline:config_kv",
                "content_sha256": hashlib.sha256(kv_json.encode("utf-8")).hexdigest(),
                "role": "config",
            }
        )

    manifest = {
        "schema_version": _schema_version(schemas_root, "manifest"),
        "run_id": run_id,
        "run_type": "optimizer",
        "quiz_id": constraints.quiz_id,
        "created_ts": created_ts,
        "inputs": inputs_list,
        "config": constraints.to_dict(),
        "outputs": [{"path": str(selection_path), "kind": "selection"}],
        "summary": summary,
        "tags": [tag] if tag else [],
    }

    # Validate summary and manifest before any write (fail fast)
    selection_schema = load_schema(schemas_root / "selection.schema.yaml")
    validate_obj(selection_schema, summary, schemas_root=schemas_root)
    manifest_schema = load_schema(schemas_root / "manifest.schema.yaml")
    validate_obj(manifest_schema, manifest, schemas_root=schemas_root)

    ensure_dir(run_dir / "artifacts")
    write_parquet(_build_selection_df(run_id, result, pool), selection_path)
    write_json(manifest, manifest_path)

    logger.info(
        json.dumps(
            {
                "event": "optimizer_run",
                "run_id": run_id,
                "candidates": len(pool),
                "selected": len(result.selected_question_ids),
                "total_score": result.total_score,
                "total_time_used": result.total_time_used,
                "dt_s": round(time.time() - t0, 6),
            }
        )
    )

    return {
        "run_id": run_id,
        "selection_path": str(selection_path),
        "manifest_path": str(manifest_path),
        "questions_path": str(questions_path),
        "candidate_count": len(pool),
        "result": result,
    }


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="python -m processes.optimizer")
    p.add_argument("--questions", type=Path, required=True, help="Question bank (csv|json|yaml|parquet)")
    p.add_argument("--config", type=Path)
    p.add_argument("--config-kv", nargs="*", help="Inline overrides key=value")
    p.add_argument("--time-limit", type=int, help="Shortcut for total_time_limit=N")
    p.add_argument("--quiz-id", type=str, help="Shortcut for quiz_id=ID")
    p.add_argument("--out-root", type=Path, default=Path("data"))
    p.add_argument("--tag", type=str)
    p.add_argument(
        "--schemas-root",
        type=Path,
        help="Override schemas root (defaults to repo-relative pipeline/schemas)",
    )
    p.add_argument("--verbose", action="store_true")
    return p


def main(argv: Sequence[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    config_kv = list(args.config_kv or [])
    if args.time_limit is not None:
        config_kv.append(f"total_time_limit={args.time_limit}")
    if args.quiz_id is not None:
        config_kv.append(f"quiz_id={args.quiz_id}")

    try:
        result = run_adapter(
            questions_path=args.questions,
            config_path=args.config,
            config_kv=config_kv,
            out_root=args.out_root,
            tag=args.tag,
            schemas_root=args.schemas_root,
        )
    except OptimizerError as e:
        print(f"[optimizer] {e.code.value}: {e.message}", file=sys.stderr)
        return 1
    except (ValidationError, ValueError) as e:
        print(f"[optimizer] Validation error: {e}", file=sys.stderr)
        return 1

    if args.verbose:
        cfg = load_config(args.config, config_kv)
        unknown = sorted(set(cfg.keys()) - KNOWN_CONFIG_KEYS)
        if unknown:
            print(
                f"[optimizer] Warning: unknown config keys ignored: {', '.join(unknown)}",
                file=sys.stderr,
            )
        res = cast(OptimizeResult, result["result"])
        print(f"[optimizer] questions: {result['questions_path']}", file=sys.stderr)
        print(f"[optimizer] candidates: {result['candidate_count']}", file=sys.stderr)
        print(
            f"[optimizer] selected: {', '.join(res.selected_question_ids) or '-'}"
            f" (score={res.total_score}, time={res.total_time_used})",
            file=sys.stderr,
        )
        print(f"[optimizer] manifest: {result['manifest_path']}", file=sys.stderr)
    return 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
