import logging

import pytest

from qrpro.logging import ROOT_LOGGER


@pytest.fixture(autouse=True)
def _reset_qrpro_logging():
    """Drop handlers installed by setup_logging so later tests start quiet."""
    yield
    root = logging.getLogger(ROOT_LOGGER)
    for handler in list(root.handlers):
        handler.close()
    root.handlers.clear()
    root.addHandler(logging.NullHandler())
    root.setLevel(logging.NOTSET)
