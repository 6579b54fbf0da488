"""Pytest configuration and fixtures.

Provides environment isolation, dotenv blocking, logging configuration and
shared test doubles. Fixtures here are autouse unless noted.
"""

from __future__ import annotations

from contextlib import suppress
from dataclasses import dataclass, field
import logging
import os
from typing import Any

import pytest

from actionlayer import ActionExecutor, Config
from actionlayer.diagnostics import MemorySink
from actionlayer.examples import users as users_module
from actionlayer.examples.users import UserService
from actionlayer.service import InMemoryRepository

# =============================================================================
# Test Doubles
# =============================================================================


@dataclass
class FakeFormBinder:
    """Records what a form component would receive."""

    events: list[tuple[str, str]] = field(default_factory=list)
    errors: dict[str, str] = field(default_factory=dict)
    resets: list[str] = field(default_factory=list)

    def dispatch(self, event: str, message: str) -> None:
        self.events.append((event, message))

    def add_error(self, field: str, message: str) -> None:
        self.errors[field] = message

    def reset(self, prop: str) -> None:
        self.resets.append(prop)


# =============================================================================
# Environment Isolation (Autouse)
# =============================================================================


@pytest.fixture(autouse=True)
def block_dotenv(request, monkeypatch):
    """Prevent python-dotenv from loading project .env files during tests.

    Opt-out: @pytest.mark.allow_dotenv
    """
    if request.node.get_closest_marker("allow_dotenv"):
        return
    with suppress(Exception):
        monkeypatch.setattr(
            "actionlayer.config.load_dotenv", lambda *_args, **_kwargs: False
        )


@pytest.fixture(autouse=True)
def isolate_actionlayer_env(request, monkeypatch):
    """Clear ACTIONLAYER_* variables so host settings never leak into tests.

    Opt-out: @pytest.mark.allow_env_pollution
    """
    if request.node.get_closest_marker("allow_env_pollution"):
        return
    for key in list(os.environ.keys()):
        if key.startswith("ACTIONLAYER_"):
            monkeypatch.delenv(key, raising=False)


@pytest.fixture(autouse=True)
def fast_password_hashing(monkeypatch):
    """Use cheap PBKDF2 iterations in tests."""
    monkeypatch.setattr(users_module, "_HASH_ITERATIONS", 1_000)


# =============================================================================
# Logging
# =============================================================================


@pytest.fixture(scope="session", autouse=True)
def quiet_noisy_libraries():
    """Suppress noisy third-party loggers."""
    logging.getLogger("asyncio").setLevel(logging.WARNING)


# =============================================================================
# Shared Fixtures
# =============================================================================


@pytest.fixture
def sink() -> MemorySink:
    return MemorySink()


@pytest.fixture
def executor(sink: MemorySink) -> ActionExecutor:
    """Executor with verbose logging into an in-memory sink."""
    return ActionExecutor(Config(verbose_action_logging=True), sink=sink)


@pytest.fixture
def quiet_executor(sink: MemorySink) -> ActionExecutor:
    """Executor with verbose logging disabled (the default)."""
    return ActionExecutor(Config(), sink=sink)


@pytest.fixture
def user_service() -> UserService:
    return UserService(InMemoryRepository())


@pytest.fixture
def form_binder() -> FakeFormBinder:
    return FakeFormBinder()


@pytest.fixture
def signup_payload() -> dict[str, Any]:
    return {
        "name": "John Doe",
        "email": "john@example.com",
        "password": "password123",
        "password_confirmation": "password123",
    }
