"""Tests for logging_utils module."""

from __future__ import annotations

import pytest
from loguru import logger

from task_tracker.logging_utils import configure_logging, pretty


class TestPretty:
    """Test pretty function."""

    def test_dict(self):
        result = pretty({"target_id": 3, "tasks": [1, 2]})
        assert '"target_id": 3' in result

    def test_custom_indent(self):
        assert pretty({"a": 1}, indent=4) == '{\n    "a": 1\n}'

    def test_non_serializable_falls_back_to_str(self):
        class Opaque:
            def __str__(self) -> str:
                return "opaque"

        assert pretty({"value": Opaque()}) == '{\n  "value": "opaque"\n}'

    def test_circular_reference(self):
        data: dict = {}
        data["self"] = data
        assert pretty(data) == str(data)


class TestConfigureLogging:
    def test_level_filters_messages(self, capsys: pytest.CaptureFixture[str]) -> None:
        configure_logging("warning")
        logger.info("quiet message")
        logger.warning("loud message")
        err = capsys.readouterr().err
        assert "loud message" in err
        assert "quiet message" not in err

    def test_reconfigure_replaces_sink(self, capsys: pytest.CaptureFixture[str]) -> None:
        configure_logging("DEBUG")
        configure_logging("DEBUG")
        logger.debug("once")
        assert capsys.readouterr().err.count("once") == 1

    def test_custom_sink(self) -> None:
        lines: list[str] = []
        configure_logging("info", sink=lines.append)
        logger.info("to the list")
        assert len(lines) == 1
        assert "to the list" in lines[0]
