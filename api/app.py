from __future__ import annotations
from fastapi import FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field
from dataclasses import asdict
import logging, os, uuid, typing as t

from exam_core import config as exam_config
from exam_core.backends import LocalGradingBackend, StoreContentBackend
from exam_core.errors import AnswerLockedError, LoadError, SubmissionError
from exam_core.azure_cfg import is_configured as azure_configured
from exam_core.layout import build_slots, build_steps, slot_count
from exam_core.llm_bridge import backend_in_use
from exam_core.session import ExamSession
from .storage import (
    FileStore,
    delete_result,
    list_exams,
    list_results_for_user,
    load_result,
)

log = logging.getLogger(__name__)

SESS: dict[str, ExamSession] = {}

app = FastAPI(title="Exam Session API")

ALLOWED_ORIGINS = [o.strip() for o in os.getenv("ALLOWED_ORIGINS", "http://localhost:3000,http://localhost:5173").split(",") if o.strip()]

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_methods=["*"],
    allow_headers=["*"],
    allow_credentials=False,
)

# ---- Schemas ----
class StartReq(BaseModel):
    test_id: str = Field(..., min_length=1)
    part: int | None = None     # single-part practice on this step
    user_id: str | None = None

class AnswerReq(BaseModel):
    index: int
    value: str = ""

class WritingReq(BaseModel):
    task_index: int
    value: str = ""

class EliminateReq(BaseModel):
    index: int
    option: str = Field(..., min_length=1)

class StepReq(BaseModel):
    index: int

class RouteReq(BaseModel):
    route: t.Literal["standard", "ai"]

# ---- Helpers ----
def _session(sid: str) -> ExamSession:
    sess = SESS.get(sid)
    if not sess:
        raise HTTPException(404, "session not found")
    return sess


def _serialize_slot(slot) -> dict[str, t.Any]:
    return {
        "index": slot.absolute_index,
        "type": slot.type,
        "q_number": slot.q_number,
        "instructions": slot.instructions,
        "text": slot.text,
        "option": [asdict(o) for o in slot.option],
        "headings": [asdict(h) for h in slot.headings],
        "options": [asdict(o) for o in slot.options],
    }


def _serialize_step(step) -> dict[str, t.Any]:
    return {
        "type": step.type,
        "label": step.label,
        "item_id": getattr(step.item, "id", None),
        "title": getattr(step.item, "title", ""),
        "start": step.start_slot_index,
        "end": step.end_slot_index,
        "task_index": step.task_index,
    }

# ---- Health ----
@app.get("/health")
def health():
    return {
        "status": "ok",
        "service": "exam-session-api",
        "llm_backend": backend_in_use(),
        "azure_configured": azure_configured(),
        "active_sessions": len(SESS),
    }

# ---- Exams ----
@app.get("/exams")
def exams():
    return {"exams": list_exams()}

@app.get("/exams/{test_id}")
def exam_layout(test_id: str):
    try:
        doc = StoreContentBackend(FileStore()).get_exam(test_id)
    except LoadError as e:
        raise HTTPException(404, str(e))
    return {
        "id": doc.id,
        "title": doc.title,
        "type": doc.type,
        "duration_minutes": doc.duration_minutes,
        "is_real_test": doc.is_real_test,
        "slot_count": slot_count(doc),
        "slots": [_serialize_slot(s) for s in build_slots(doc)],
        "steps": [_serialize_step(s) for s in build_steps(doc)],
    }

# ---- Session ----
@app.post("/session/start")
def start(req: StartReq):
    store = FileStore()
    try:
        sess = ExamSession.open(
            req.test_id,
            StoreContentBackend(store),
            LocalGradingBackend(store, user_id=req.user_id),
            practice_step=req.part,
            autostart_clock=exam_config.CLOCK_AUTOSTART,
        )
    except LoadError as e:
        raise HTTPException(404, str(e))
    sid = str(uuid.uuid4())
    SESS[sid] = sess
    log.info("session %s started for %s", sid, req.test_id)
    return {"session_id": sid, "state": sess.get_session_state()}

@app.post("/session/{sid}/answer")
def answer(sid: str, req: AnswerReq):
    sess = _session(sid)
    try:
        sess.set_answer(req.index, req.value)
    except IndexError as e:
        raise HTTPException(400, str(e))
    except AnswerLockedError as e:
        raise HTTPException(409, str(e))
    return {"ok": True, "answered": sess.store.answered_count() if sess.store else 0}

@app.post("/session/{sid}/writing")
def writing_answer(sid: str, req: WritingReq):
    sess = _session(sid)
    try:
        sess.set_writing_answer(req.task_index, req.value)
    except IndexError as e:
        raise HTTPException(400, str(e))
    except AnswerLockedError as e:
        raise HTTPException(409, str(e))
    return {"ok": True}

@app.post("/session/{sid}/eliminate")
def eliminate(sid: str, req: EliminateReq):
    sess = _session(sid)
    try:
        flagged = sess.toggle_eliminated(req.index, req.option)
    except IndexError as e:
        raise HTTPException(400, str(e))
    except AnswerLockedError as e:
        raise HTTPException(409, str(e))
    return {"index": req.index, "option": req.option, "eliminated": flagged}

@app.post("/session/{sid}/step")
def navigate(sid: str, req: StepReq):
    sess = _session(sid)
    try:
        step = sess.go_to_step(req.index)
    except IndexError as e:
        raise HTTPException(400, str(e))
    return {"current_step": sess.current_step, "step": _serialize_step(step)}

@app.get("/session/{sid}/state")
def state(sid: str):
    return _session(sid).get_session_state()

@app.post("/session/{sid}/submit")
def submit(sid: str):
    sess = _session(sid)
    try:
        result = sess.confirm_submit()
    except SubmissionError as e:
        raise HTTPException(502 if e.status_code < 500 else e.status_code, str(e))
    return {"status": sess.status, "result": asdict(result) if result else None}

@app.post("/session/{sid}/route")
def route(sid: str, req: RouteReq):
    sess = _session(sid)
    try:
        result = sess.choose_writing_scoring_route(req.route)
    except SubmissionError as e:
        raise HTTPException(502 if e.status_code < 500 else e.status_code, str(e))
    return {"status": sess.status, "result": asdict(result) if result else None}

@app.post("/session/{sid}/route/cancel")
def cancel_route(sid: str):
    sess = _session(sid)
    sess.cancel_route()
    return sess.get_session_state()

@app.post("/session/{sid}/recover")
def recover(sid: str):
    sess = _session(sid)
    if not sess.recover():
        raise HTTPException(409, f"session is {sess.status}, nothing to recover")
    return sess.get_session_state()

@app.delete("/session/{sid}")
def close(sid: str):
    sess = _session(sid)
    sess.close()
    SESS.pop(sid, None)
    return {"ok": True}

# ---- Results ----
@app.get("/results/{result_id}")
def get_result(result_id: str):
    result = load_result(result_id)
    if not result:
        raise HTTPException(404, "result not found")
    return result

@app.delete("/results/{result_id}")
def delete_result_endpoint(result_id: str):
    if not delete_result(result_id):
        raise HTTPException(404, "result not found")
    return {"ok": True}

@app.get("/users/{user_id}/results")
def list_results(user_id: str, test_id: str | None = Query(None)):
    return {"results": list_results_for_user(user_id, test_id)}
