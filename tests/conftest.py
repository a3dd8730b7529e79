"""Pytest configuration and fixtures.

Provides environment isolation, config cache resets and shared host
collaborators. Isolation fixtures are autouse; opt out with the markers
registered in pyproject.toml.
"""

from __future__ import annotations

from contextlib import suppress
from decimal import Decimal
import logging
import os

import pytest

from recourse.config import reset_default_config
from tests.helpers import Item, VendingMachine

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
            "dotenv.load_dotenv", lambda *_args, **_kwargs: False, raising=False
        )


@pytest.fixture(autouse=True)
def isolate_recourse_env(request, monkeypatch):
    """Clear RECOURSE_* variables and the cached default config around each test.

    Opt-out: @pytest.mark.allow_env_pollution
    """
    if not request.node.get_closest_marker("allow_env_pollution"):
        for key in list(os.environ.keys()):
            if key.startswith("RECOURSE_"):
                monkeypatch.delenv(key, raising=False)
    reset_default_config()
    yield
    reset_default_config()


# =============================================================================
# Logging
# =============================================================================


@pytest.fixture(scope="session", autouse=True)
def library_logging():
    """Let records from the library reach caplog."""
    logging.getLogger("recourse").setLevel(logging.DEBUG)


# =============================================================================
# Host Collaborators
# =============================================================================


@pytest.fixture
def vending_machine() -> VendingMachine:
    """The playground machine: 1.00 deposited, three snacks stocked."""
    return VendingMachine(
        inventory={
            "Candy Bar": Item(price=Decimal("1.25"), count=7),
            "Chips": Item(price=Decimal("1.00"), count=4),
            "Pretzels": Item(price=Decimal("0.75"), count=11),
        },
        deposited=Decimal("1.00"),
    )
