from __future__ import annotations

import json

from exam_core import llm_bridge
from exam_core.config import WRITING_CRITERIA
from exam_core.heuristics import heuristic_essay_band
from exam_core.types import WritingTask
from exam_core.writing import build_writing_answers, criteria_bands, performance_label, word_count, writing_overall_band
from tests.conftest import SAMPLE_ESSAY


def _llm_off(monkeypatch):
    monkeypatch.delenv("USE_LLM_OPEN", raising=False)
    monkeypatch.delenv("LLM_BACKEND", raising=False)
    monkeypatch.delenv("LLM_LOG_PATH", raising=False)


def test_build_writing_answers_drops_blank_tasks():
    tasks = [WritingTask(id="w1", title="Task One"), WritingTask(id="w2")]
    written = build_writing_answers(["  ", "Cities   grow fast"], tasks)
    assert len(written) == 1
    assert (written[0].task_id, written[0].task_title, written[0].word_count) == ("w2", "Task 2", 3)
    assert word_count("") == 0


def test_overall_band_weights_task_two_double():
    results = [{"band": 6.0, "task_type": "task1"}, {"band": 7.0, "task_type": "task2"}]
    assert writing_overall_band(results) == 6.5
    assert writing_overall_band([{"band": 6.3, "task_type": "task2"}]) == 6.5
    assert writing_overall_band([]) == 0.0


def test_criteria_bands_and_labels():
    results = [
        {"task_type": "task1", "criteria": {k: 6.0 for k in WRITING_CRITERIA}},
        {"task_type": "task2", "criteria": {k: 7.5 for k in WRITING_CRITERIA}},
        {"task_type": "task2", "criteria": None},
    ]
    assert criteria_bands(results) == {k: 7.0 for k in WRITING_CRITERIA}
    assert performance_label(7.0) == "Strong"
    assert performance_label(6.5) == "Developing"
    assert performance_label(5.5) == "Needs Improvement"


def test_heuristic_band_is_bounded():
    assert heuristic_essay_band("", "task2")["band"] == 0.0
    graded = heuristic_essay_band(SAMPLE_ESSAY, "task2")
    assert 0.0 < graded["band"] <= 9.0
    assert set(graded["criteria"]) == set(WRITING_CRITERIA)
    assert "words" in graded["summary"]


def test_score_essay_uses_heuristic_when_llm_off(monkeypatch):
    _llm_off(monkeypatch)
    assert llm_bridge.backend_in_use() == "none"
    graded = llm_bridge.score_essay("w1", "Discuss.", SAMPLE_ESSAY, "task2")
    assert graded["backend"] == "heuristic"
    assert graded["band"] == heuristic_essay_band(SAMPLE_ESSAY, "task2")["band"]


def test_score_essay_parses_azure_reply(monkeypatch, tmp_path):
    _llm_off(monkeypatch)
    monkeypatch.setenv("USE_LLM_OPEN", "1")
    monkeypatch.setenv("LLM_BACKEND", "azure")
    log_path = tmp_path / "llm.jsonl"
    monkeypatch.setenv("LLM_LOG_PATH", str(log_path))
    reply = {k: 7 for k in WRITING_CRITERIA}
    reply["lexical_resource"] = 11
    reply["summary"] = "Clear position."
    monkeypatch.setattr(llm_bridge, "_grade_azure", lambda prompt, essay, task_type: json.dumps(reply))

    graded = llm_bridge.score_essay("w1", "Discuss.", SAMPLE_ESSAY, "task2")
    assert graded["backend"] == "azure"
    assert graded["criteria"]["lexical_resource"] == 9.0
    assert graded["band"] == 7.5
    assert graded["summary"] == "Clear position."
    line = json.loads(log_path.read_text(encoding="utf-8").splitlines()[0])
    assert line["task"] == "w1" and line["backend"] == "azure"


def test_score_essay_falls_back_on_llm_failure(monkeypatch):
    _llm_off(monkeypatch)
    monkeypatch.setenv("USE_LLM_OPEN", "true")
    monkeypatch.setenv("LLM_BACKEND", "azure")

    def boom(prompt, essay, task_type):
        raise RuntimeError("Azure OpenAI not configured")

    monkeypatch.setattr(llm_bridge, "_grade_azure", boom)
    graded = llm_bridge.score_essay("w1", "Discuss.", SAMPLE_ESSAY, "task2")
    assert graded["backend"] == "heuristic"
    assert "not configured" in graded["error"]
