"""JSON file persistence for curves and graded results.

The engine itself never stores anything; this module is the HTTP layer's
best-effort store. Records live under ``DATA_DIR`` as one JSON file each, with
small index files listing their metadata. Writes go through a temp file and an
atomic replace.
"""

from __future__ import annotations

import json
import logging
import os
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional


DATA_ROOT = Path(os.getenv("DATA_DIR", "data")).resolve()
CURVES_DIR = DATA_ROOT / "curves"
GRADED_DIR = DATA_ROOT / "graded"
CURVE_INDEX_PATH = DATA_ROOT / "curves_index.json"
GRADED_INDEX_PATH = DATA_ROOT / "graded_index.json"

_LOCK = threading.Lock()

log = logging.getLogger(__name__)


def _ensure_dirs() -> None:
    CURVES_DIR.mkdir(parents=True, exist_ok=True)
    GRADED_DIR.mkdir(parents=True, exist_ok=True)


def _read_json(path: Path, default: Any) -> Any:
    if not path.exists():
        return default
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        log.warning("could not read %s: %s", path, exc)
        return default


def _write_json(path: Path, payload: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + ".tmp")
    tmp.write_text(json.dumps(payload, indent=2, sort_keys=True), encoding="utf-8")
    tmp.replace(path)


# ---- curves ----

def save_curve(curve_id: str, curve: Dict[str, Any], metadata: Dict[str, Any]) -> None:
    """Persist an encoded curve and its index metadata."""

    _ensure_dirs()
    with _LOCK:
        index: Dict[str, Dict[str, Any]] = _read_json(CURVE_INDEX_PATH, {})
        index[curve_id] = metadata
        _write_json(CURVE_INDEX_PATH, index)
    _write_json(CURVES_DIR / f"{curve_id}.json", curve)


def load_curve(curve_id: str) -> Optional[Dict[str, Any]]:
    return _read_json(CURVES_DIR / f"{curve_id}.json", None)


def list_curves() -> List[Dict[str, Any]]:
    index: Dict[str, Dict[str, Any]] = _read_json(CURVE_INDEX_PATH, {})
    out: List[Dict[str, Any]] = []
    for cid, meta in index.items():
        item = {"id": cid}
        item.update({k: v for k, v in meta.items() if k != "id"})
        out.append(item)
    out.sort(key=lambda r: r.get("computedAt", ""), reverse=True)
    return out


def delete_curve(curve_id: str) -> bool:
    removed = False
    with _LOCK:
        index: Dict[str, Dict[str, Any]] = _read_json(CURVE_INDEX_PATH, {})
        if curve_id in index:
            index.pop(curve_id, None)
            _write_json(CURVE_INDEX_PATH, index)
            removed = True
    path = CURVES_DIR / f"{curve_id}.json"
    if path.exists():
        path.unlink()
        removed = True
    return removed


# ---- graded results ----

def save_graded(graded_id: str, graded: Dict[str, Any], metadata: Dict[str, Any]) -> None:
    _ensure_dirs()
    with _LOCK:
        index: Dict[str, Dict[str, Any]] = _read_json(GRADED_INDEX_PATH, {})
        index[graded_id] = metadata
        _write_json(GRADED_INDEX_PATH, index)
    _write_json(GRADED_DIR / f"{graded_id}.json", graded)


def load_graded(graded_id: str) -> Optional[Dict[str, Any]]:
    return _read_json(GRADED_DIR / f"{graded_id}.json", None)


def graded_for_curve(curve_id: str) -> List[Dict[str, Any]]:
    index: Dict[str, Dict[str, Any]] = _read_json(GRADED_INDEX_PATH, {})
    out: List[Dict[str, Any]] = []
    for gid, meta in index.items():
        if meta.get("curveId") == curve_id:
            item = {"id": gid}
            item.update({k: v for k, v in meta.items() if k != "id"})
            out.append(item)
    out.sort(key=lambda r: r.get("scoresId", ""))
    return out
