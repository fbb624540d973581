"""File-based partition runs: read items, partition, write artifacts and a manifest."""

from __future__ import annotations

import hashlib
import json
from collections.abc import Sequence
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import pandas as pd

from pipeline.io.files import ensure_dir, write_json, write_parquet
from pipeline.io.validate import load_schema, validate_obj

from .core import Partitioner
from .options import load_config, normalize_options
from .types import Grouping, Item, ValidationError

REPO_ROOT = Path(__file__).resolve().parents[1]
SCHEMAS_ROOT = REPO_ROOT / "pipeline" / "schemas"


def _utc_now_iso() -> str:
    # Millisecond precision per schema pattern
    now = datetime.now(timezone.utc)
    ms = int(now.microsecond / 1000)
    return f"{now.strftime('%Y-%m-%dT%H:%M:%S')}.{ms:03d}Z"


def _sha256_of_path(path: Path) -> str:
    h = hashlib.sha256()
    with path.open("rb") as f:
        for chunk in iter(lambda: f.read(8192), b""):
            h.update(chunk)
    return h.hexdigest()


def items_from_frame(
    df: pd.DataFrame, id_col: str = "id", capacity_col: str = "capacity"
) -> list[Item]:
    missing = [c for c in (id_col, capacity_col) if c not in df.columns]
    if missing:
        raise ValidationError(
            f"Missing required columns in items: {missing}",
            reasons=["missing_columns"],
            details={"missing": missing},
        )
    out: list[Item] = []
    for item_id, capacity in zip(df[id_col].tolist(), df[capacity_col].tolist()):
        out.append(Item(item_id, capacity))
    return out


def load_items(path: Path, id_col: str = "id", capacity_col: str = "capacity") -> list[Item]:
    suffix = path.suffix.lower()
    if suffix == ".parquet":
        df = pd.read_parquet(path)
    elif suffix == ".json":
        df = pd.read_json(path, orient="records")
    else:
        df = pd.read_csv(path)
    return items_from_frame(df, id_col, capacity_col)


def grouping_to_frame(grouping: Grouping, items: Sequence[Item]) -> pd.DataFrame:
    rows: list[dict[str, Any]] = []
    for g, members in enumerate(grouping.groups_by_index):
        for pos, idx in enumerate(members):
            rows.append(
                {
                    "group": g,
                    "position": pos,
                    "item_index": idx,
                    # ids may mix str and int; keep one column type
                    "item_id": str(items[idx].id),
                    "capacity": float(items[idx].capacity),
                    "group_sum": float(grouping.group_sums[g]),
                }
            )
    return pd.DataFrame(rows)


def _schema_version(schemas_root: Path) -> str:
    schema = load_schema(schemas_root / "partition_manifest.schema.yaml")
    return str(schema.get("version", "0.0.0"))


def run_adapter(
    *,
    input_path: Path,
    groups: int,
    group_size: int,
    out_root: Path,
    config_path: Path | None = None,
    config_kv: Sequence[str] | None = None,
    seed: int | None = None,
    tag: str | None = None,
    schemas_root: Path | None = None,
    partitioner: Partitioner | None = None,
) -> dict[str, Any]:
    created_ts = _utc_now_iso()
    schemas_root = schemas_root or SCHEMAS_ROOT

    cfg = load_config(config_path, config_kv)
    if seed is not None:
        cfg["seed"] = seed
    # Fail fast on bad options before reading or writing anything
    options = normalize_options(cfg)

    items = load_items(input_path)
    grouping = (partitioner or Partitioner()).partition(items, groups, group_size, options)

    items_sha = _sha256_of_path(input_path)
    cfg_json = json.dumps(cfg, sort_keys=True, separators=(",", ":"))
    cfg_sha = hashlib.sha256(cfg_json.encode("utf-8")).hexdigest()
    inputs_list: list[dict[str, Any]] = [
        {"path": str(input_path), "content_sha256": items_sha, "role": "items"}
    ]
    if config_path is not None and config_path.exists():
        inputs_list.append(
            {
                "path": str(config_path),
                "content_sha256": _sha256_of_path(config_path),
                "role": "config",
            }
        )
    if config_kv:
        inputs_list.append(
            {
                "path": "inline:config_kv",
                "content_sha256": hashlib.sha256(
                    json.dumps(sorted(config_kv)).encode("utf-8")
                ).hexdigest(),
                "role": "config",
            }
        )

    # Portable run_id: YYYYMMDD_HHMMSS_<shorthash>
    ts = datetime.now(timezone.utc)
    short_hash = hashlib.sha256(
        f"{items_sha}|{cfg_sha}|{seed}|{groups}x{group_size}".encode()
    ).hexdigest()[:8]
    run_id = f"{ts.strftime('%Y%m%d_%H%M%S')}_{short_hash}"

    run_dir = out_root / "runs" / "partition" / run_id
    artifacts_dir = run_dir / "artifacts"
    assignments_path = artifacts_dir / "assignments.parquet"
    manifest = {
        "schema_version": _schema_version(schemas_root),
        "run_id": run_id,
        "run_type": "partition",
        "created_ts": created_ts,
        "inputs": inputs_list,
        "config": options.to_dict(),
        "shape": {"groups": groups, "group_size": group_size, "items": len(items)},
        "result": {
            "method_used": grouping.method_used,
            "delta": grouping.delta,
            "stdev": grouping.stdev,
            "iterations": grouping.iterations,
            "group_sums": list(grouping.group_sums),
        },
        "outputs": [{"path": str(assignments_path), "kind": "partition_assignments"}],
        "tags": [tag] if tag else [],
    }
    # Validate before any write
    manifest_schema = load_schema(schemas_root / "partition_manifest.schema.yaml")
    validate_obj(manifest_schema, manifest, schemas_root=schemas_root)

    ensure_dir(artifacts_dir)
    write_parquet(grouping_to_frame(grouping, items), assignments_path)
    write_json(manifest, run_dir / "manifest.json")

    return {
        "run_id": run_id,
        "assignments_path": str(assignments_path),
        "manifest_path": str(run_dir / "manifest.json"),
        "method_used": grouping.method_used,
        "delta": grouping.delta,
        "group_count": len(grouping.groups_by_index),
    }
