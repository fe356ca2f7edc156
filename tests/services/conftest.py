"""Service test fixtures — wired runtime plus a recording connection handle.

Invariants:
    - Every test gets a fresh runtime (own id space, own flows)
    - RecordingConnection stores every write; fail=True makes writes raise
"""

import pytest

from lightrpc.core.options import ProtocolOptions
from lightrpc.services.runtime import create_runtime


class RecordingConnection:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.status = "OPENED"
        self.writes: list = []
        self.close_reasons: list = []

    async def write(self, data):
        if self.fail:
            raise ConnectionResetError("socket gone")
        self.writes.append(data)

    def close(self, reason=None):
        self.status = "CLOSED"
        self.close_reasons.append(reason)


@pytest.fixture
def runtime():
    return create_runtime(ProtocolOptions(debug=True))


@pytest.fixture
def dispatcher(runtime):
    return runtime.dispatcher


@pytest.fixture
def directory(runtime):
    return runtime.directory


@pytest.fixture
def make_connection():
    return RecordingConnection
