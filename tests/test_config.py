"""Tests for stacktutor.config."""

from __future__ import annotations

from pathlib import Path

import pytest

from stacktutor.config import CONFIG_FILENAME, StacktutorConfig, load_config
from stacktutor.errors import ConfigError


def test_load_config_returns_defaults_when_missing(tmp_path: Path) -> None:
    config = load_config(tmp_path, environ={})

    assert isinstance(config, StacktutorConfig)
    assert config.root == tmp_path.resolve()
    assert config.llm.backend == "anthropic"
    assert config.llm.model is None
    assert config.llm.request_timeout == 120.0
    assert config.digest.top_imports == 20
    assert config.digest.exclude_paths == []
    assert config.curriculum.difficulty == "beginner"
    assert config.curriculum.batch_workers == 1
    assert config.knowledge.enabled is True


def test_load_config_parses_expected_fields(tmp_path: Path) -> None:
    (tmp_path / CONFIG_FILENAME).write_text(
        """
llm:
  backend: "OpenAI"
  model: "gpt-4o-mini"
  api_key_env: "MY_KEY"
  request_timeout: 45
  max_tokens: 2048
digest:
  top_imports: 10
  instruction_excerpt_chars: 300
  max_file_bytes: 50000
  exclude_paths:
    - "vendor/"
    - "fixtures/"
curriculum:
  difficulty: advanced
  batch_workers: 3
  max_excerpt_chars: 4000
  structure_max_tokens: 8000
  content_max_tokens: 9000
knowledge:
  enabled: "no"
  cache_ttl_seconds: 30
  cache_size: 16
""",
        encoding="utf-8",
    )

    config = load_config(tmp_path / CONFIG_FILENAME, environ={})

    assert config.llm.backend == "openai"
    assert config.llm.model == "gpt-4o-mini"
    assert config.llm.api_key_env == "MY_KEY"
    assert config.llm.request_timeout == 45.0
    assert config.llm.max_tokens == 2048
    assert config.digest.top_imports == 10
    assert config.digest.instruction_excerpt_chars == 300
    assert config.digest.max_file_bytes == 50000
    assert config.digest.exclude_paths == ["vendor/", "fixtures/"]
    assert config.curriculum.difficulty == "advanced"
    assert config.curriculum.batch_workers == 3
    assert config.curriculum.max_excerpt_chars == 4000
    assert config.curriculum.structure_max_tokens == 8000
    assert config.curriculum.content_max_tokens == 9000
    assert config.knowledge.enabled is False
    assert config.knowledge.cache_ttl_seconds == 30.0
    assert config.knowledge.cache_size == 16


def test_invalid_values_fall_back_to_defaults(tmp_path: Path) -> None:
    (tmp_path / CONFIG_FILENAME).write_text(
        """
llm:
  request_timeout: -3
  max_tokens: "lots"
curriculum:
  batch_workers: 12
knowledge:
  enabled: maybe
""",
        encoding="utf-8",
    )

    config = load_config(tmp_path, environ={})

    assert config.llm.request_timeout == 120.0
    assert config.llm.max_tokens == 4096
    assert config.curriculum.batch_workers == 5
    assert config.knowledge.enabled is True


def test_environment_overrides_file_values(tmp_path: Path) -> None:
    (tmp_path / CONFIG_FILENAME).write_text("llm:\n  backend: anthropic\n  model: claude\n", encoding="utf-8")

    config = load_config(
        tmp_path,
        environ={
            "STACKTUTOR_BACKEND": " Google ",
            "STACKTUTOR_MODEL": "gemini-2.0-flash",
            "STACKTUTOR_REQUEST_TIMEOUT": "15",
        },
    )

    assert config.llm.backend == "google"
    assert config.llm.model == "gemini-2.0-flash"
    assert config.llm.request_timeout == 15.0


def test_empty_file_yields_defaults(tmp_path: Path) -> None:
    (tmp_path / CONFIG_FILENAME).write_text("   \n", encoding="utf-8")

    assert load_config(tmp_path, environ={}).llm.backend == "anthropic"


def test_invalid_yaml_raises(tmp_path: Path) -> None:
    (tmp_path / CONFIG_FILENAME).write_text("llm: [unclosed\n", encoding="utf-8")

    with pytest.raises(ConfigError):
        load_config(tmp_path, environ={})


def test_non_mapping_root_raises(tmp_path: Path) -> None:
    (tmp_path / CONFIG_FILENAME).write_text("- just\n- a list\n", encoding="utf-8")

    with pytest.raises(ConfigError) as excinfo:
        load_config(tmp_path, environ={})
    assert excinfo.value.kind == "config"
