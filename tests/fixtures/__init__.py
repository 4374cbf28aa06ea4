"""Common test fixtures: fake backend services behind an httpx transport."""

import json
from typing import Any, Optional

import httpx

AUTH_URL = "http://auth.test"
FORUM_URL = "http://forum.test"
ASSISTANT_URL = "http://assistant.test"
RAG_URL = "http://rag.test"

VALID_TOKEN = "Bearer valid-token"
MEMBER_USER_ID = 42
MEMBER_ROLE = "MEMBER"


def streamed(
    status_code: int,
    content: bytes,
    headers: Optional[list[tuple[str, str]]] = None,
) -> httpx.Response:
    """Build a response whose body is still unread, like one off the network."""
    headers = headers or [("content-type", "application/json")]
    return httpx.Response(status_code, headers=headers, stream=httpx.ByteStream(content))


class FakeBackends:
    """Records every outbound call and answers like the real services would.

    The auth service's ``/auth/verify`` accepts ``VALID_TOKEN`` only. Every
    other call returns ``backend_status`` / ``backend_body`` unless an
    error is configured.
    """

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.verify_body: Any = {
            "verified": True,
            "user_id": MEMBER_USER_ID,
            "role": MEMBER_ROLE,
        }
        self.verify_status = 200
        self.verify_error: Optional[Exception] = None
        self.backend_status = 200
        self.backend_body: Any = {"ok": True}
        self.backend_headers: list[tuple[str, str]] = []
        self.backend_error: Optional[Exception] = None

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    @property
    def verify_calls(self) -> list[httpx.Request]:
        return [r for r in self.requests if self._is_verify(r)]

    @property
    def backend_calls(self) -> list[httpx.Request]:
        return [r for r in self.requests if not self._is_verify(r)]

    @staticmethod
    def _is_verify(request: httpx.Request) -> bool:
        return request.url.host == "auth.test" and request.url.path == "/auth/verify"

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self._is_verify(request):
            return self._verify(request)

        if self.backend_error is not None:
            raise self.backend_error
        content = self.backend_body
        if not isinstance(content, bytes):
            content = json.dumps(content).encode()
        headers = [("content-type", "application/json")] + self.backend_headers
        if all(name.lower() != "content-length" for name, _ in headers):
            headers.append(("content-length", str(len(content))))
        return streamed(self.backend_status, content, headers)

    def _verify(self, request: httpx.Request) -> httpx.Response:
        if self.verify_error is not None:
            raise self.verify_error
        if request.headers.get("authorization") != VALID_TOKEN:
            return streamed(200, json.dumps({"verified": False}).encode())
        content = self.verify_body
        if not isinstance(content, bytes):
            content = json.dumps(content).encode()
        return streamed(self.verify_status, content)
