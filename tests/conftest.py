import pytest

from tickwire.action import _depth
from tickwire.scheduler import auto_boundary, get_batcher


@pytest.fixture(autouse=True)
def _reset_default_batcher():
    """Each test starts with an idle default batcher in auto mode."""
    batcher = get_batcher()
    batcher.clear()
    batcher.boundary = auto_boundary
    _depth.clear()
    yield
    batcher.clear()
    batcher.boundary = auto_boundary
    _depth.clear()
