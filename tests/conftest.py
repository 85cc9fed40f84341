import logging

import pytest

from fleetscaler.logging_config import _HANDLER_NAME


@pytest.fixture(autouse=True)
def restore_root_logger():
    """Drop the JSON stdout handler the app installs at startup."""
    root = logging.getLogger()
    level = root.level
    yield
    for handler in [h for h in root.handlers if getattr(h, _HANDLER_NAME, False)]:
        root.removeHandler(handler)
    root.setLevel(level)
