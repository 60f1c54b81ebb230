from __future__ import annotations

import pytest
from loguru import logger


@pytest.fixture(autouse=True)
def _reset_loguru():
    """Drop sinks bound to a test's captured stderr once the test ends."""
    yield
    logger.remove()
