"""JSON-file persistence for exams, attempts and writing submissions.

Everything lives under ``DATA_DIR`` so the API can be restarted without losing
results. Index files are rewritten under a process-wide lock and every write
goes through a temp file that replaces the target.
"""

from __future__ import annotations

import json
import os
import threading
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from exam_core.config import ATTEMPT_HISTORY_LIMIT


DATA_ROOT = Path(os.getenv("DATA_DIR", "data")).resolve()
EXAMS_DIR = DATA_ROOT / "exams"
RESULTS_DIR = DATA_ROOT / "results"
WRITING_DIR = DATA_ROOT / "writing"
RESULT_INDEX_PATH = DATA_ROOT / "results_index.json"

_LOCK = threading.Lock()


def _ensure_dirs() -> None:
    for d in (DATA_ROOT, EXAMS_DIR, RESULTS_DIR, WRITING_DIR):
        d.mkdir(parents=True, exist_ok=True)


def _read_json(path: Path, default: Any) -> Any:
    if not path.exists():
        return default
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError):
        return default


def _write_json(path: Path, payload: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + ".tmp")
    tmp.write_text(json.dumps(payload, indent=2, sort_keys=True), encoding="utf-8")
    tmp.replace(path)


def _safe_name(key: str) -> str:
    # ids become file names; refuse anything that could walk out of the dir
    name = str(key)
    if not name or "/" in name or "\\" in name or name.startswith("."):
        raise ValueError(f"invalid id {key!r}")
    return name


def utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---- exams (read side of the content backend) ----

def load_exam(test_id: str) -> Optional[Dict[str, Any]]:
    try:
        path = EXAMS_DIR / f"{_safe_name(test_id)}.json"
    except ValueError:
        return None
    return _read_json(path, None)


def save_exam(test_id: str, document: Dict[str, Any]) -> None:
    _ensure_dirs()
    _write_json(EXAMS_DIR / f"{_safe_name(test_id)}.json", document)


def list_exams() -> List[Dict[str, Any]]:
    if not EXAMS_DIR.exists():
        return []
    out: List[Dict[str, Any]] = []
    for path in sorted(EXAMS_DIR.glob("*.json")):
        doc = _read_json(path, None)
        if isinstance(doc, dict):
            out.append({"id": path.stem, "title": doc.get("title", ""), "type": doc.get("type", "reading")})
    return out


# ---- results ----

def save_result(result_id: str, result: Dict[str, Any], metadata: Dict[str, Any]) -> None:
    """Persist a submission result and its index entry."""

    _ensure_dirs()
    with _LOCK:
        index: Dict[str, Dict[str, Any]] = _read_json(RESULT_INDEX_PATH, {})
        index[result_id] = metadata
        _write_json(RESULT_INDEX_PATH, index)
    _write_json(RESULTS_DIR / f"{_safe_name(result_id)}.json", result)


def load_result(result_id: str) -> Optional[Dict[str, Any]]:
    try:
        path = RESULTS_DIR / f"{_safe_name(result_id)}.json"
    except ValueError:
        return None
    return _read_json(path, None)


def delete_result(result_id: str) -> bool:
    removed = False
    with _LOCK:
        index: Dict[str, Dict[str, Any]] = _read_json(RESULT_INDEX_PATH, {})
        if result_id in index:
            index.pop(result_id, None)
            _write_json(RESULT_INDEX_PATH, index)
            removed = True
    try:
        path = RESULTS_DIR / f"{_safe_name(result_id)}.json"
    except ValueError:
        return removed
    path.unlink(missing_ok=True)
    return removed


def list_results_for_user(user_id: str, test_id: Optional[str] = None) -> List[Dict[str, Any]]:
    index: Dict[str, Dict[str, Any]] = _read_json(RESULT_INDEX_PATH, {})
    out: List[Dict[str, Any]] = []
    for rid, meta in index.items():
        if meta.get("userId") != user_id:
            continue
        if test_id is not None and meta.get("testId") != test_id:
            continue
        item = {"id": rid}
        item.update({k: v for k, v in meta.items() if k != "id"})
        out.append(item)
    out.sort(key=lambda r: r.get("createdAt", ""), reverse=True)
    return out


def save_attempt(user_id: str, test_id: str, attempt: Dict[str, Any]) -> str:
    """Store a graded attempt, keeping only the newest ATTEMPT_HISTORY_LIMIT per user and test."""

    attempt_id = str(uuid.uuid4())
    created = utcnow_iso()
    record = {"id": attempt_id, "userId": user_id, "testId": test_id, "createdAt": created, **attempt}
    metadata = {
        "userId": user_id,
        "testId": test_id,
        "createdAt": created,
        "type": attempt.get("type"),
        "score": attempt.get("score"),
        "total": attempt.get("total"),
    }
    save_result(attempt_id, record, metadata)
    for old in list_results_for_user(user_id, test_id)[ATTEMPT_HISTORY_LIMIT:]:
        delete_result(old["id"])
    return attempt_id


# ---- writing submissions ----

def save_writing_submission(submission_id: str, payload: Dict[str, Any]) -> None:
    _ensure_dirs()
    record = dict(payload)
    record.setdefault("createdAt", utcnow_iso())
    record["updatedAt"] = utcnow_iso()
    _write_json(WRITING_DIR / f"{_safe_name(submission_id)}.json", record)


def load_writing_submission(submission_id: str) -> Optional[Dict[str, Any]]:
    try:
        path = WRITING_DIR / f"{_safe_name(submission_id)}.json"
    except ValueError:
        return None
    return _read_json(path, None)


class FileStore:
    """ExamStore over this module's functions, for the local backends."""

    def load_exam(self, test_id: str) -> Optional[Dict[str, Any]]:
        return load_exam(test_id)

    def save_writing_submission(self, submission_id: str, payload: Dict[str, Any]) -> None:
        save_writing_submission(submission_id, payload)

    def load_writing_submission(self, submission_id: str) -> Optional[Dict[str, Any]]:
        return load_writing_submission(submission_id)

    def save_attempt(self, user_id: str, test_id: str, attempt: Dict[str, Any]) -> str:
        return save_attempt(user_id, test_id, attempt)
