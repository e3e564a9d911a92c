from __future__ import annotations

from typing import Iterator, List, Optional, Tuple

import pytest
from fastapi.testclient import TestClient

from app.main import app, get_tutor_client


class StubTutor:
    """Deterministic stand-in for ``TutorClient``."""

    def __init__(self, reply: str = "Gravity pulls masses together.", error: Optional[Exception] = None):
        self.reply = reply
        self.error = error
        self.calls: List[Tuple[str, str]] = []

    async def ask(self, message: str) -> str:
        self.calls.append(("ask", message))
        if self.error is not None:
            raise self.error
        return self.reply

    async def teach(self, topic: str) -> str:
        self.calls.append(("teach", topic))
        if self.error is not None:
            raise self.error
        return self.reply


@pytest.fixture
def stub() -> StubTutor:
    return StubTutor()


@pytest.fixture
def client(stub: StubTutor) -> Iterator[TestClient]:
    app.dependency_overrides[get_tutor_client] = lambda: stub
    try:
        yield TestClient(app, raise_server_exceptions=False)
    finally:
        app.dependency_overrides.clear()
