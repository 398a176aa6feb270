from __future__ import annotations

import pytest

from fakes import FakeConnection


@pytest.fixture
def connection() -> FakeConnection:
    return FakeConnection()
