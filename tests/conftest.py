import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from peetle.components.config.settings import load_settings
from peetle.utils.ffmpeg_probe import clear_duration_memo


@pytest.fixture
def settings():
    """Default configuration as shipped in peetle/templates/config.yaml."""
    return load_settings()


@pytest.fixture(autouse=True)
def _fresh_duration_memo():
    clear_duration_memo()
    yield
    clear_duration_memo()
