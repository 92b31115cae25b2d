"""
Core pytest configuration and fixtures for Clarabot testing.

This module provides shared test fixtures, configuration, and utilities
that support the pillar-based testing architecture.
"""

import tempfile
import textwrap
from pathlib import Path
from typing import List
from unittest.mock import MagicMock

import pytest
from clarabot.capability import Capability, CapabilityContext
from clarabot.config import Config
from clarabot.models import FINISH_FUNCTION_CALL, FINISH_STOP, Completion, FunctionCall

# ===== TEST DATA HELPERS =====


def stop(content: str) -> Completion:
    """A plain completion."""
    return Completion(finish_reason=FINISH_STOP, content=content)


def call(name: str, arguments: str = "{}") -> Completion:
    """A completion asking for a function call."""
    return Completion(
        finish_reason=FINISH_FUNCTION_CALL,
        function_call=FunctionCall(name=name, arguments=arguments),
    )


class StaticCapability(Capability):
    """A capability with a fixed id that returns a fixed result."""

    def __init__(self, capability_id: str = "static", result: str = "ok"):
        self._id = capability_id
        self.result = result
        self.calls: List[str] = []
        self.init_count = 0

    def init(self, context):
        super().init(context)
        self.init_count += 1

    def id(self):
        return self._id

    def description(self):
        return f"Static capability {self._id}"

    def function_schema(self):
        return {
            "name": self._id,
            "description": self.description(),
            "parameters": {"type": "object", "properties": {}},
        }

    def execute(self, arguments):
        self.calls.append(arguments)
        return self.result


PLUGIN_SOURCE = textwrap.dedent(
    '''
    import json

    from clarabot.capability import Capability


    class Echo(Capability):
        def id(self):
            return "{id}"

        def description(self):
            return "Echo the arguments"

        def function_schema(self):
            return {{
                "name": "{id}",
                "description": "Echo the arguments",
                "parameters": {{"type": "object", "properties": {{}}}},
            }}

        def execute(self, arguments):
            return json.dumps(json.loads(arguments))


    Plugin = Echo()
    '''
)


def plugin_source(capability_id: str = "echo") -> str:
    """Source of a valid capability module."""
    return PLUGIN_SOURCE.format(id=capability_id)


# ===== DIRECTORY FIXTURES =====


@pytest.fixture
def temp_dir():
    """Temporary directory for file-based tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def config(temp_dir) -> Config:
    """Config rooted in a temporary plugins directory."""
    return Config(api_key="test-key", plugins_path=temp_dir / "plugins")


@pytest.fixture
def compiled_dir(config) -> Path:
    config.compiled_dir.mkdir(parents=True)
    return config.compiled_dir


@pytest.fixture
def write_unit():
    """Helper that writes a capability module into a directory."""

    def _write(directory: Path, filename: str, source: str) -> Path:
        path = directory / filename
        path.write_text(source, encoding="utf-8")
        return path

    return _write


# ===== MOCK FIXTURES =====


@pytest.fixture
def mock_llm():
    """Mock LLM whose parse_completion returns scripted completions."""
    mock = MagicMock()
    mock.generate_response.return_value = MagicMock()
    mock.parse_completion.return_value = stop("Mock LLM response")
    return mock


@pytest.fixture
def context(config, mock_llm) -> CapabilityContext:
    return CapabilityContext(config=config, llm=mock_llm)


# ===== CONFIGURATION =====


def pytest_configure(config):
    """Pytest configuration."""
    config.addinivalue_line("markers", "integration: marks tests as integration tests")
    config.addinivalue_line("markers", "slow: marks tests as slow-running")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on location."""
    for item in items:
        if "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)
            item.add_marker(pytest.mark.slow)
