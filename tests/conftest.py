"""Pytest configuration and shared fixtures."""

from __future__ import annotations

from pathlib import Path

import pytest

from storyloom.persistence.gateway import DocumentGateway, StoryScope
from storyloom.state.store import StateStore
from tests.fixtures.story_fixtures import FlakyDocumentStore


@pytest.fixture
def project_root() -> Path:
    """Return the project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture
def scope() -> StoryScope:
    return StoryScope(user_id="u1", story_id="s1")


@pytest.fixture
def doc_store() -> FlakyDocumentStore:
    return FlakyDocumentStore()


@pytest.fixture
def gateway(doc_store: FlakyDocumentStore) -> DocumentGateway:
    return DocumentGateway(doc_store)


@pytest.fixture
def state_store() -> StateStore:
    return StateStore()
