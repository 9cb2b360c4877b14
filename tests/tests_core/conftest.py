"""
Shared fixtures for core tests.

Key fixtures:
- restore_root_logger: snapshot and restore root logger handlers and level
- clean_env: remove QUERYKIT_* variables so Config() sees defaults
"""

import logging

import pytest

QUERYKIT_ENV_VARS = (
    'QUERYKIT_SQL_FLAVOR',
    'QUERYKIT_COMPACT_PARAMS',
    'QUERYKIT_DEEP_COMPARE',
    'QUERYKIT_LOG_LEVEL',
    'QUERYKIT_LOG_FILE',
    'QUERYKIT_LOG_DIR',
)


@pytest.fixture
def restore_root_logger():
    """Yield the root logger and undo any setup_logging() changes afterwards."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield root
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def clean_env(monkeypatch):
    for name in QUERYKIT_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch
