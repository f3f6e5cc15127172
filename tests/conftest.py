from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Optional, Sequence, Tuple

import pytest

from stacktutor.models import Snapshot
from stacktutor.snapshot import classify_file
from tests._fixtures.backends import ScriptedBackend
from tests._fixtures.repo_builder import RepoBuilder


@pytest.fixture
def repo_builder(tmp_path: Path) -> RepoBuilder:
    """Provide a reusable project builder rooted at the pytest tmp_path."""
    return RepoBuilder(tmp_path)


@pytest.fixture
def make_snapshot() -> Callable[..., Snapshot]:
    """Build a Snapshot from ``(path, content)`` pairs, classifying each path."""

    def _make(files: Sequence[Tuple[str, Optional[str]]], name: str = "demo") -> Snapshot:
        return Snapshot.from_entries(name, [(path, classify_file(path), content) for path, content in files])

    return _make


@pytest.fixture
def scripted_backend() -> Callable[..., ScriptedBackend]:
    return ScriptedBackend


@pytest.fixture(autouse=True)
def _reset_stacktutor_logger():
    """Undo ``configure_logging`` so caplog sees records in later tests."""
    yield
    logger = logging.getLogger("stacktutor")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    logger.propagate = True
    logger.setLevel(logging.NOTSET)
