"""Tests for .env loading and typed settings."""

import os

from vidqa import config


def test_read_env_file(tmp_path) -> None:
    path = tmp_path / ".env"
    path.write_text(
        "# comment\n"
        "VIDQA_LLM_MODEL = \"llama3\"\n"
        "export VIDQA_DB_PATH='/tmp/db.sqlite3'\n"
        "not a setting\n"
        "VIDQA_LLM_BASE_URL=http://localhost:11434/v1?a=b\n"
        "EMPTY=\n",
        encoding="utf-8",
    )
    assert config.read_env_file(path) == {
        "VIDQA_LLM_MODEL": "llama3",
        "VIDQA_DB_PATH": "/tmp/db.sqlite3",
        "VIDQA_LLM_BASE_URL": "http://localhost:11434/v1?a=b",
        "EMPTY": "",
    }
    assert config.read_env_file(tmp_path / "missing.env") == {}


def test_env_file_never_overrides_environment(tmp_path, monkeypatch) -> None:
    (tmp_path / ".vidqa").mkdir()
    (tmp_path / ".vidqa" / ".env").write_text(
        "VIDQA_MCP_USER=from-file\nVIDQA_LLM_PROVIDER=file-provider\n", encoding="utf-8"
    )
    monkeypatch.setattr(config, "_loaded", False)
    monkeypatch.setenv("VIDQA_MCP_USER", "from-env")
    monkeypatch.delenv("VIDQA_LLM_PROVIDER", raising=False)
    # the loader writes straight into os.environ; undo it after the test
    monkeypatch.setattr(os, "environ", os.environ.copy())

    assert config.load_config().resolve() == (tmp_path / ".vidqa" / ".env").resolve()
    assert config.get("VIDQA_MCP_USER") == "from-env"
    assert config.get("VIDQA_LLM_PROVIDER") == "file-provider"
    assert config.load_config() is None


def test_typed_settings(monkeypatch) -> None:
    monkeypatch.setattr(config, "_loaded", True)
    monkeypatch.delenv("VIDQA_LLM_TIMEOUT", raising=False)
    assert config.get("VIDQA_LLM_TIMEOUT", 60.0, cast=float) == 60.0

    for raw, expected in (("12.5", 12.5), ("'30'", 30.0), ("nan", 60.0), ("-1", 60.0), ("soon", 60.0)):
        monkeypatch.setenv("VIDQA_LLM_TIMEOUT", raw)
        assert config.get("VIDQA_LLM_TIMEOUT", 60.0, cast=float) == expected, raw

    monkeypatch.setenv("VIDQA_DAILY_MESSAGE_LIMIT", "0")
    assert config.get("VIDQA_DAILY_MESSAGE_LIMIT", 40, cast=int) == 40
    monkeypatch.setenv("VIDQA_DAILY_MESSAGE_LIMIT", "7")
    assert config.get("VIDQA_DAILY_MESSAGE_LIMIT", 40, cast=int) == 7

    monkeypatch.setenv("VIDQA_MCP_USER", "  ")
    assert config.get("VIDQA_MCP_USER", "mcp") == "mcp"
