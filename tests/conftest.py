import os
import sys

import pytest

# Qt widgets are never shown; the store only needs a working QObject.
os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from runtime_config import RuntimeConfig, set_config


@pytest.fixture(autouse=True)
def fresh_runtime_config():
    """Every test starts from default runtime settings."""
    set_config(RuntimeConfig())
    yield
    set_config(RuntimeConfig())
