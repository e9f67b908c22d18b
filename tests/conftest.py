"""Shared fixtures for the portfolio register tests."""

import pytest

from portfolio_register.config import activate_config
from portfolio_register.schema import Application, BusinessValue


@pytest.fixture(autouse=True)
def default_config(monkeypatch):
    """Run every test against the built-in defaults."""
    monkeypatch.delenv("PORTFOLIO_REGISTER_CONFIG", raising=False)
    monkeypatch.delenv("PORTFOLIO_ADVISOR_API_KEY", raising=False)
    activate_config()
    yield
    activate_config()


@pytest.fixture
def make_app():
    """Factory for applications with sensible defaults."""
    def _make(code="APP-1", **fields):
        fields.setdefault("name", f"Application {code}")
        fields.setdefault("value", BusinessValue.STANDARD)
        return Application(code=code, **fields)
    return _make
