"""Shared fixtures for unit tests."""

import pytest

from prompt_workflow.core.config import clear_config_cache
from prompt_workflow.workflow.conditions import RuleRegistry


@pytest.fixture(autouse=True)
def _reset_global_state():
    """Registered resolvers and cached configs must not leak between tests."""
    RuleRegistry.reset()
    clear_config_cache()
    yield
    RuleRegistry.reset()
    clear_config_cache()
