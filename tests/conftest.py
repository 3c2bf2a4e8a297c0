import pytest
import structlog


@pytest.fixture(autouse=True)
def _reset_structlog():
    # CLI tests configure structlog onto pytest's per-test captured stream;
    # reset so later tests don't log to a closed file.
    yield
    structlog.reset_defaults()
