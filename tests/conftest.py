import pytest

from devtopo.UTILS.logging import setup_logging


@pytest.fixture(autouse=True)
def quiet_logging():
    """Keep structlog at warning level; the CLI tests reconfigure it per invocation."""
    setup_logging(level="warning")
    yield
