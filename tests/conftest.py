"""Pytest fixtures.

This file adjusts sys.path for src-layout imports.
"""

# ruff: noqa: E402

import os
import sys

# Ensure `src` is on sys.path so imports like `from dmstore.core...` resolve during tests
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
SRC = os.path.join(ROOT, "src")
if os.path.isdir(SRC):
    sys.path.insert(0, SRC)
sys.path.insert(0, ROOT)

import pytest
from rich.traceback import install

from dmstore.core.entities.entity_store import EntityStore
from dmstore.core.entities.kinds import DEFAULT_KINDS, EntityKind
from dmstore.core.sessions.memory import MemoryDocumentSession
from tests.utils import USERS_DOCUMENT

# Enable readable tracebacks in development / test environments.
# Can be disabled with PYTEST_RICH=0
if os.getenv("PYTEST_RICH", "1") == "1":
    install(
        show_locals=True,  # show local variables for each frame
        width=None,  # use terminal width
        word_wrap=True,  # wrap long lines
        extra_lines=1,  # some context around lines
        suppress=["/usr/lib/python3", "site-packages"],  # hide "noisy" third-party frames
    )


@pytest.fixture
def session() -> MemoryDocumentSession:
    """Provide an in-memory session holding an empty users document."""
    session = MemoryDocumentSession()
    session.create_document(USERS_DOCUMENT, "users")
    return session


@pytest.fixture
def users_kind() -> EntityKind:
    """Return the default users kind."""
    return DEFAULT_KINDS["users"]


@pytest.fixture
def users(users_kind, session) -> EntityStore:
    """Provide an EntityStore over the empty users document."""
    return EntityStore(users_kind, session)
