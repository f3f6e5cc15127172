"""Configuration loading for stacktutor (.stacktutor.yml)."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence

import yaml

from .errors import ConfigError

CONFIG_FILENAME = ".stacktutor.yml"

ENV_BACKEND = "STACKTUTOR_BACKEND"
ENV_MODEL = "STACKTUTOR_MODEL"
ENV_TIMEOUT = "STACKTUTOR_REQUEST_TIMEOUT"


@dataclass
class LLMConfig:
    """Generation backend settings."""

    backend: str = "anthropic"
    model: Optional[str] = None
    api_key_env: Optional[str] = None
    request_timeout: float = 120.0
    max_tokens: int = 4096


@dataclass
class DigestSettings:
    """Limits applied while assembling the project digest."""

    top_imports: int = 20
    instruction_excerpt_chars: int = 500
    max_file_bytes: int = 200_000
    exclude_paths: List[str] = field(default_factory=list)


@dataclass
class CurriculumSettings:
    """Curriculum generation knobs."""

    difficulty: str = "beginner"
    batch_workers: int = 1
    max_excerpt_chars: int = 6000
    structure_max_tokens: int = 16384
    content_max_tokens: int = 16384


@dataclass
class KnowledgeSettings:
    enabled: bool = True
    cache_ttl_seconds: float = 600.0
    cache_size: int = 128


@dataclass
class StacktutorConfig:
    """Represents the settings defined in .stacktutor.yml."""

    root: Path
    llm: LLMConfig = field(default_factory=LLMConfig)
    digest: DigestSettings = field(default_factory=DigestSettings)
    curriculum: CurriculumSettings = field(default_factory=CurriculumSettings)
    knowledge: KnowledgeSettings = field(default_factory=KnowledgeSettings)


def load_config(config_path: Path, *, environ: Mapping[str, str] | None = None) -> StacktutorConfig:
    """Load configuration from disk, applying environment overrides."""
    env = os.environ if environ is None else environ
    config_file = _resolve_config_path(config_path)
    root = config_file.parent.resolve()

    data: Dict[str, Any] = {}
    if config_file.exists():
        data = _read_config(config_file)
        if not isinstance(data, dict):
            raise ConfigError(f"{CONFIG_FILENAME} must contain a mapping at the root")

    llm_data = _as_dict(data.get("llm"))
    llm = LLMConfig()
    if llm_data:
        llm.backend = (_as_str(llm_data.get("backend")) or llm.backend).lower()
        llm.model = _as_str(llm_data.get("model"))
        llm.api_key_env = _as_str(llm_data.get("api_key_env"))
        llm.request_timeout = _positive_float(llm_data.get("request_timeout"), llm.request_timeout)
        llm.max_tokens = _positive_int(llm_data.get("max_tokens"), llm.max_tokens)

    digest_data = _as_dict(data.get("digest"))
    digest = DigestSettings()
    if digest_data:
        digest.top_imports = _positive_int(digest_data.get("top_imports"), digest.top_imports)
        digest.instruction_excerpt_chars = _positive_int(
            digest_data.get("instruction_excerpt_chars"), digest.instruction_excerpt_chars
        )
        digest.max_file_bytes = _positive_int(digest_data.get("max_file_bytes"), digest.max_file_bytes)
        digest.exclude_paths = _as_str_list(digest_data.get("exclude_paths"))

    curriculum_data = _as_dict(data.get("curriculum"))
    curriculum = CurriculumSettings()
    if curriculum_data:
        curriculum.difficulty = _as_str(curriculum_data.get("difficulty")) or curriculum.difficulty
        workers = _positive_int(curriculum_data.get("batch_workers"), curriculum.batch_workers)
        curriculum.batch_workers = max(1, min(workers, 5))
        curriculum.max_excerpt_chars = _positive_int(
            curriculum_data.get("max_excerpt_chars"), curriculum.max_excerpt_chars
        )
        curriculum.structure_max_tokens = _positive_int(
            curriculum_data.get("structure_max_tokens"), curriculum.structure_max_tokens
        )
        curriculum.content_max_tokens = _positive_int(
            curriculum_data.get("content_max_tokens"), curriculum.content_max_tokens
        )

    knowledge_data = _as_dict(data.get("knowledge"))
    knowledge = KnowledgeSettings()
    if knowledge_data:
        enabled = _as_bool(knowledge_data.get("enabled"))
        if enabled is not None:
            knowledge.enabled = enabled
        knowledge.cache_ttl_seconds = _positive_float(
            knowledge_data.get("cache_ttl_seconds"), knowledge.cache_ttl_seconds
        )
        knowledge.cache_size = _positive_int(knowledge_data.get("cache_size"), knowledge.cache_size)

    _apply_env_overrides(llm, env)

    return StacktutorConfig(
        root=root,
        llm=llm,
        digest=digest,
        curriculum=curriculum,
        knowledge=knowledge,
    )


def _apply_env_overrides(llm: LLMConfig, env: Mapping[str, str]) -> None:
    backend = env.get(ENV_BACKEND)
    if backend:
        llm.backend = backend.strip().lower()
    model = env.get(ENV_MODEL)
    if model:
        llm.model = model.strip()
    timeout = env.get(ENV_TIMEOUT)
    if timeout:
        llm.request_timeout = _positive_float(timeout, llm.request_timeout)


def _resolve_config_path(config_path: Path) -> Path:
    config_path = config_path.expanduser()
    if config_path.is_dir():
        return (config_path / CONFIG_FILENAME).resolve()
    if config_path.name != CONFIG_FILENAME:
        return (config_path.parent / CONFIG_FILENAME).resolve()
    return config_path.resolve()


def _read_config(path: Path) -> Dict[str, Any]:
    text = path.read_text(encoding="utf-8")
    if not text.strip():
        return {}
    try:
        loaded = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse {path.name}: {exc}") from exc
    return loaded or {}


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_str(value: Any) -> Optional[str]:
    return str(value) if isinstance(value, (str, int, float)) and not isinstance(value, bool) else None


def _positive_float(value: Any, default: float) -> float:
    if isinstance(value, bool):
        return default
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value)
        except ValueError:
            return default
    else:
        return default
    return number if number > 0 else default


def _positive_int(value: Any, default: int) -> int:
    if isinstance(value, bool):
        return default
    if isinstance(value, int):
        number = value
    elif isinstance(value, str):
        try:
            number = int(value)
        except ValueError:
            return default
    else:
        return default
    return number if number > 0 else default


def _as_bool(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"true", "yes", "1"}:
            return True
        if lowered in {"false", "no", "0"}:
            return False
    return None


def _as_str_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, Sequence):
        return [str(item) for item in value if isinstance(item, (str, int, float))]
    return []


__all__ = [
    "CONFIG_FILENAME",
    "CurriculumSettings",
    "DigestSettings",
    "KnowledgeSettings",
    "LLMConfig",
    "StacktutorConfig",
    "load_config",
]
