from __future__ import annotations

import json

import pytest

from exam_core import azure_cfg
from exam_core.config import _env_number, get_backend, load_config


def test_env_number_falls_back_on_garbage(monkeypatch):
    monkeypatch.setenv("EXAM_TEST_NUMBER", "abc")
    assert _env_number("EXAM_TEST_NUMBER", 7, int) == 7
    monkeypatch.setenv("EXAM_TEST_NUMBER", " 2.5 ")
    assert _env_number("EXAM_TEST_NUMBER", 1.0, float) == 2.5


def test_env_overrides_config_file(tmp_path, monkeypatch):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"USE_LLM_OPEN": False, "LLM_BACKEND": "azure"}), encoding="utf-8")
    monkeypatch.delenv("USE_LLM_OPEN", raising=False)
    monkeypatch.delenv("LLM_BACKEND", raising=False)
    assert get_backend(load_config(str(path))) is None

    monkeypatch.setenv("USE_LLM_OPEN", "yes")
    cfg = load_config(str(path))
    assert cfg["USE_LLM_OPEN"] is True and get_backend(cfg) == "azure"
    monkeypatch.setenv("LLM_BACKEND", "ollama")
    assert get_backend(load_config(str(path))) is None


def test_corrupt_config_file_is_ignored(tmp_path, monkeypatch):
    monkeypatch.delenv("USE_LLM_OPEN", raising=False)
    path = tmp_path / "config.json"
    path.write_text("{oops", encoding="utf-8")
    assert get_backend(load_config(str(path))) is None


def test_azure_settings_report_missing_keys(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("EXAM_AZURE_CONFIG", raising=False)
    for env in azure_cfg._KEYS.values():
        monkeypatch.delenv(env, raising=False)
    assert not azure_cfg.is_configured()
    monkeypatch.setenv("AZURE_OPENAI_ENDPOINT", "https://example.openai.azure.com")
    with pytest.raises(RuntimeError) as err:
        azure_cfg.settings()
    assert "writing grader" in str(err.value)
    assert "AZURE_OPENAI_API_KEY" in str(err.value) and "AZURE_OPENAI_ENDPOINT" not in str(err.value)

    (tmp_path / ".azure_config.json").write_text(
        json.dumps({"api_key": "k", "api_version": "2024-02-01", "deployment": "gpt"}), encoding="utf-8"
    )
    s = azure_cfg.settings()
    assert (s.endpoint, s.api_key, s.deployment) == ("https://example.openai.azure.com", "k", "gpt")


def test_azure_settings_read_named_config_file(tmp_path, monkeypatch):
    for env in azure_cfg._KEYS.values():
        monkeypatch.delenv(env, raising=False)
    path = tmp_path / "grader.json"
    path.write_text(
        json.dumps({"endpoint": "https://grader.openai.azure.com", "api_key": "k", "api_version": "v", "deployment": "essay"}),
        encoding="utf-8",
    )
    monkeypatch.setenv("EXAM_AZURE_CONFIG", str(path))
    assert azure_cfg.settings().deployment == "essay"
