import pytest

from config import TestingSettings as TestingProfile
from main import configure_logging


@pytest.fixture(autouse=True, scope="session")
def quiet_logging():
    """Send structlog through stdlib logging for the whole test session."""
    configure_logging(TestingProfile())
