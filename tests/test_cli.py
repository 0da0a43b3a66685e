from __future__ import annotations

import json

from app_cli.run_exam import main
from tests.conftest import SAMPLE_ESSAY, build_synthetic_exam, correct_answer


def _write(tmp_path, name, payload):
    path = tmp_path / name
    path.write_text(json.dumps(payload), encoding="utf-8")
    return str(path)


def test_cli_grades_answers_file(tmp_path, capsys):
    exam = _write(tmp_path, "exam-1.json", build_synthetic_exam())
    answers = _write(tmp_path, "answers.json", [correct_answer(i) for i in range(30)])
    assert main([exam, answers]) == 0
    out = capsys.readouterr().out
    assert "Score: 30/40" in out and "Band: 7.0" in out


def test_cli_practice_part_as_json(tmp_path, capsys):
    exam = _write(tmp_path, "exam-1.json", build_synthetic_exam())
    answers = _write(tmp_path, "answers.json", {"answers": [correct_answer(i) for i in range(12)]})
    assert main([exam, answers, "--part", "1", "--json"]) == 0
    result = json.loads(capsys.readouterr().out)
    assert (result["score"], result["total"], result["scoped_step"]) == (2, 15, 1)


def test_cli_writing_standard_route(tmp_path, capsys):
    exam = _write(tmp_path, "wr.json", build_synthetic_exam(test_id="wr", reading=(), writing=1))
    answers = _write(tmp_path, "answers.json", {"writing": ["The chart shows sales."]})
    assert main([exam, answers]) == 0
    assert ": pending" in capsys.readouterr().out


def test_cli_writing_part_uses_ai_route(tmp_path, capsys, monkeypatch):
    monkeypatch.delenv("USE_LLM_OPEN", raising=False)
    exam = _write(tmp_path, "wr.json", build_synthetic_exam(test_id="wr", reading=(), writing=2))
    answers = _write(tmp_path, "answers.json", {"writing": ["", SAMPLE_ESSAY]})
    assert main([exam, answers, "--part", "1", "--route", "ai"]) == 0
    out = capsys.readouterr().out
    assert "Practice on step 1" in out and "Writing band:" in out


def test_cli_reports_bad_part(tmp_path, capsys):
    exam = _write(tmp_path, "exam-1.json", build_synthetic_exam())
    answers = _write(tmp_path, "answers.json", [])
    assert main([exam, answers, "--part", "9"]) == 1
    assert "Error:" in capsys.readouterr().err
