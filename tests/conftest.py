"""Shared fixtures: a scripted in-memory transport."""

import copy
from typing import Any

import pytest

from models import ErrorKind, TransportError
from ovh_client import Response, parse_response


class FakeTransport:
    """Records every call and replays scripted replies per (method, path).

    A reply is a payload (dict, list or None) or a TransportError to raise.
    The last scripted reply for a route is repeated once the others are used.
    """

    def __init__(self) -> None:
        self.calls: list[tuple[str, str, Any]] = []
        self._replies: dict[tuple[str, str], list[Any]] = {}

    def reply(self, method: str, path: str, *replies: Any) -> "FakeTransport":
        self._replies.setdefault((method, path), []).extend(replies)
        return self

    def fail(self, method: str, path: str, kind: ErrorKind, message: str = "") -> "FakeTransport":
        return self.reply(method, path, TransportError(kind, message or kind.value))

    def do(self, method: str, path: str, body: Any = None) -> Response:
        self.calls.append((method, path, copy.deepcopy(body)))
        replies = self._replies.get((method, path))
        if not replies:
            raise TransportError(ErrorKind.NOT_FOUND, f"no route for {method} {path}", 404)
        reply = replies.pop(0) if len(replies) > 1 else replies[0]
        if isinstance(reply, TransportError):
            raise reply
        return parse_response(copy.deepcopy(reply))

    def methods(self) -> list[str]:
        return [method for method, _, _ in self.calls]

    def bodies(self, method: str) -> list[Any]:
        return [body for m, _, body in self.calls if m == method]


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()
