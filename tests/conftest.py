"""
Shared fixtures for the lshmatch test suite.
"""

import logging

import pytest

from lshmatch.config import MatcherSettings
from lshmatch.storage.table_store import TableStore

SCENARIO_CORPUS = [
    (1001, "CAMPER"),
    (1002, "AAAAAABAAAAAAA"),
    (1003, "FUBAR"),
    (1004, "Z"),
]

NAMES_CORPUS = [
    (1, "JONATHAN SMITH"),
    (2, "JOHNATHAN SMITH"),
    (3, "JONATHON SMYTH"),
    (4, "JANE SMITHERS"),
    (5, "MARGARET THATCHER"),
    (6, "MARGARITA THATCHER"),
    (7, "ROBERT BROWN"),
    (8, "ROBERTA BROWNE"),
    (9, "ALICE COOPER"),
    (10, "ALLISON COOPERMAN"),
    (11, "SMITH JONATHAN"),
    (12, "JON SMITH"),
]


@pytest.fixture(autouse=True)
def isolated_environment(tmp_path, monkeypatch):
    """Keep settings files, env overrides and logging state out of tests."""
    for var in ("LSHMATCH_CONFIG", "LSHMATCH_INDEX_ROOT", "LSHMATCH_PARTITIONS",
                "LSHMATCH_MAX_WORKERS", "LSHMATCH_SEED", "LSHMATCH_LOG_LEVEL"):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    monkeypatch.chdir(tmp_path)
    yield
    # The CLI configures the package logger; undo it so caplog still sees records
    pkg_logger = logging.getLogger("lshmatch")
    pkg_logger.handlers.clear()
    pkg_logger.propagate = True
    pkg_logger.setLevel(logging.NOTSET)


@pytest.fixture
def index_root(tmp_path):
    return tmp_path / "indexes"


@pytest.fixture
def settings(index_root):
    """Settings with a private index root and a fixed seed."""
    return MatcherSettings(index_root=str(index_root), partitions=4, max_workers=2, seed=7)


@pytest.fixture
def store(index_root):
    return TableStore(index_root)


@pytest.fixture
def scenario_corpus():
    return list(SCENARIO_CORPUS)


@pytest.fixture
def names_corpus():
    return list(NAMES_CORPUS)
