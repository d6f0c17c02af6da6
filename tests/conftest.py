import sys
from pathlib import Path

import pytest

# Ensure project root is importable
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from gofer import config as config_module  # noqa: E402
from gofer.config import Config  # noqa: E402


@pytest.fixture(autouse=True)
def reset_config() -> Config:
    """Reset the global configuration before each test."""
    config = Config()
    config_module._config = config  # type: ignore[attr-defined]
    yield config
    config_module._config = None  # type: ignore[attr-defined]


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"
