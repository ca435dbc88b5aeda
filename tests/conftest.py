"""Shared fixtures for the travel assistant tests."""

from __future__ import annotations

import pytest

from travel_ai.core.memory.manager import ConversationMemory

from tests.fakes import FakeClock


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def memory():
    return ConversationMemory(
        max_sessions=100,
        max_messages_per_session=50,
        max_context_tokens=8000,
    )
