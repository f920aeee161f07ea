"""Shared test fixtures for the order bot test suite."""

import asyncio

import pytest

from fakes import Bot, build_bot


@pytest.fixture(scope="session")
def event_loop():
    """Use a single event loop for the entire test session."""
    loop = asyncio.new_event_loop()
    yield loop
    loop.close()


@pytest.fixture
def bot() -> Bot:
    return build_bot()
