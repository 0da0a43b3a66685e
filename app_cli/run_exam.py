
from __future__ import annotations
import argparse, json, logging, sys
from dataclasses import asdict
from exam_core.backends import InMemoryStore, LocalGradingBackend, StoreContentBackend
from exam_core.config import LOG_LEVEL
from exam_core.document import load_document_file
from exam_core.errors import ExamError
from exam_core.session import ExamSession
def _load(path: str):
    with open(path, "r", encoding="utf-8") as f: return json.load(f)
def main(argv=None) -> int:
    ap = argparse.ArgumentParser(description="Grade a set of answers against an exam document.")
    ap.add_argument("exam", help="exam document (JSON)")
    ap.add_argument("answers", help="answers JSON: a list of strings, or {\"answers\": [...], \"writing\": [...]}")
    ap.add_argument("--part", type=int, default=None, help="score only this step (practice)")
    ap.add_argument("--route", choices=["standard", "ai"], default="standard", help="writing scoring route for a single writing --part")
    ap.add_argument("--json", action="store_true", help="print the full result as JSON")
    args = ap.parse_args(argv)
    logging.basicConfig(level=getattr(logging, LOG_LEVEL.upper(), logging.INFO), format="[%(levelname)s] %(message)s")

    doc = load_document_file(args.exam); test_id = doc.id
    store = InMemoryStore({test_id: doc})
    raw = _load(args.answers)
    answers = raw.get("answers", []) if isinstance(raw, dict) else raw
    writing = raw.get("writing", []) if isinstance(raw, dict) else []
    sess = None
    try:
        sess = ExamSession.open(test_id, StoreContentBackend(store), LocalGradingBackend(store),
                                practice_step=args.part, autostart_clock=False)
        for i, v in enumerate(answers[:len(sess.slots)]): sess.set_answer(i, str(v or ""))
        for i, v in enumerate(writing[:len(sess.doc.writing)]): sess.set_writing_answer(i, str(v or ""))
        res = sess.confirm_submit()
        if res is None and sess.status == "awaiting_route": res = sess.choose_writing_scoring_route(args.route)
    except ExamError as e:
        print(f"Error: {e}", file=sys.stderr); return 1
    finally:
        if sess is not None: sess.close()
    if res is None:
        print("Nothing was submitted.", file=sys.stderr); return 1
    if args.json:
        print(json.dumps(asdict(res), indent=2, ensure_ascii=False)); return 0
    print(f"{sess.doc.title or test_id} ({sess.doc.type})")
    print(f"Score: {res.score}/{res.total}  wrong={res.wrong}  skipped={res.skipped}  ({res.percentage if res.percentage is not None else 0}%)")
    if res.band is not None: print(f"Band: {res.band}")
    if res.scoped_step is not None: print(f"Practice on step {res.scoped_step}")
    if res.writing_band is not None: print(f"Writing band: {res.writing_band}")
    elif res.writing_submission_id: print(f"Writing submission {res.writing_submission_id}: {res.writing_status}")
    return 0
if __name__ == "__main__": sys.exit(main())
