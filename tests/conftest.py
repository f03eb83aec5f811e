import sys

import pytest
from loguru import logger


@pytest.fixture(autouse=True)
def _reset_logging():
    yield
    # The CLI rebinds loguru to whatever stream was sys.stderr at call time.
    logger.remove()
    logger.add(lambda message: sys.stderr.write(message), level="INFO")
