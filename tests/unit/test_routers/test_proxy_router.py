"""Tests for the proxy router's Starlette adapter and disconnect handling."""

import asyncio
from typing import Optional
from unittest.mock import AsyncMock

import pytest
from starlette.requests import Request

from services.gateway.pipeline import GatewayPipeline
from services.gateway.routers.proxy import (
    CLIENT_CLOSED_REQUEST,
    cancel_on_disconnect,
    proxy,
    to_inbound,
)
from services.gateway.schemas import GatewayResponse


def make_request(
    queue: asyncio.Queue,
    method: str = "POST",
    path: str = "/rag/documents",
    raw_path: Optional[bytes] = None,
    content_type: str = "application/json",
) -> Request:
    """Starlette request whose ASGI messages come from ``queue``."""
    scope = {
        "type": "http",
        "method": method,
        "path": path,
        "query_string": b"",
        "headers": [(b"content-type", content_type.encode())],
    }
    if raw_path is not None:
        scope["raw_path"] = raw_path
    return Request(scope, queue.get)


def body_message(body: bytes, more_body: bool = False) -> dict:
    return {"type": "http.request", "body": body, "more_body": more_body}


DISCONNECT = {"type": "http.disconnect"}


@pytest.fixture
def pipeline() -> AsyncMock:
    """Fixture for a pipeline whose behaviour each test sets."""
    return AsyncMock(spec=GatewayPipeline)


class TestToInbound:
    """Test cases for building the pipeline's request carrier."""

    @pytest.mark.asyncio
    async def test_path_kept_percent_encoded(self):
        """Test the path comes from the undecoded request line."""
        queue = asyncio.Queue()
        queue.put_nowait(body_message(b""))
        request = make_request(
            queue,
            method="GET",
            path="/forum/posts/a/b",
            raw_path=b"/forum/posts/a%2Fb",
        )

        inbound = await to_inbound(request)

        assert inbound.path == "/forum/posts/a%2Fb"

    @pytest.mark.asyncio
    async def test_decoded_path_without_raw_path(self):
        """Test servers that omit raw_path fall back to the decoded path."""
        queue = asyncio.Queue()
        queue.put_nowait(body_message(b""))
        request = make_request(queue, method="GET", path="/forum/posts")

        inbound = await to_inbound(request)

        assert inbound.path == "/forum/posts"

    @pytest.mark.asyncio
    async def test_multipart_body_left_as_stream(self):
        """Test multipart bodies are not read up front."""
        queue = asyncio.Queue()
        request = make_request(queue, content_type="multipart/form-data; boundary=XyZ")

        inbound = await to_inbound(request)

        assert not isinstance(inbound.body, bytes)
        assert queue.empty()


class TestCancelOnDisconnect:
    """Test cases for tying forwarded work to the caller's connection."""

    @pytest.mark.asyncio
    async def test_disconnect_cancels_work(self):
        """Test the work is cancelled once the caller goes away."""
        queue = asyncio.Queue()
        started = asyncio.Event()
        cancelled = asyncio.Event()

        async def work():
            started.set()
            queue.put_nowait(DISCONNECT)
            try:
                await asyncio.sleep(60)
            except asyncio.CancelledError:
                cancelled.set()
                raise

        result = await asyncio.wait_for(
            cancel_on_disconnect(make_request(queue), work()),
            timeout=5,
        )

        assert result is None
        assert started.is_set()
        assert cancelled.is_set()

    @pytest.mark.asyncio
    async def test_result_returned_while_connected(self):
        """Test the result is returned when the caller stays connected."""

        async def work():
            await asyncio.sleep(0)
            return "answer"

        result = await asyncio.wait_for(
            cancel_on_disconnect(make_request(asyncio.Queue()), work()),
            timeout=5,
        )

        assert result == "answer"

    @pytest.mark.asyncio
    async def test_work_error_propagates(self):
        """Test a failure inside the work is not mistaken for a disconnect."""

        async def work():
            raise ValueError("boom")

        with pytest.raises(ValueError):
            await cancel_on_disconnect(make_request(asyncio.Queue()), work())


class TestProxyEndpoint:
    """Test cases for the catch-all endpoint."""

    @pytest.mark.asyncio
    async def test_answer_relayed(self, pipeline):
        """Test the pipeline's answer becomes the HTTP response."""
        queue = asyncio.Queue()
        queue.put_nowait(body_message(b'{"title": "a"}'))
        pipeline.handle.return_value = GatewayResponse(
            status_code=201,
            headers=[("x-backend", "rag")],
            body=b'{"id":1}',
        )

        response = await proxy(make_request(queue), pipeline)

        assert response.status_code == 201
        assert response.body == b'{"id":1}'
        assert response.headers["x-backend"] == "rag"
        inbound = pipeline.handle.await_args.args[0]
        assert inbound.body == b'{"title": "a"}'

    @pytest.mark.asyncio
    async def test_disconnect_while_forwarding_is_499(self, pipeline):
        """Test a caller leaving mid-forward cancels the pipeline."""
        queue = asyncio.Queue()
        queue.put_nowait(body_message(b'{"title": "a"}'))
        cancelled = asyncio.Event()

        async def handle(inbound):
            queue.put_nowait(DISCONNECT)
            try:
                await asyncio.sleep(60)
            except asyncio.CancelledError:
                cancelled.set()
                raise

        pipeline.handle.side_effect = handle

        response = await asyncio.wait_for(proxy(make_request(queue), pipeline), timeout=5)

        assert response.status_code == CLIENT_CLOSED_REQUEST
        assert cancelled.is_set()

    @pytest.mark.asyncio
    async def test_disconnect_during_upload_is_499(self, pipeline):
        """Test a caller leaving mid-upload ends the multipart stream."""
        queue = asyncio.Queue()
        queue.put_nowait(body_message(b"--XyZ\r\n", more_body=True))
        queue.put_nowait(DISCONNECT)
        received = []

        async def handle(inbound):
            async for chunk in inbound.body:
                received.append(chunk)

        pipeline.handle.side_effect = handle
        request = make_request(queue, content_type="multipart/form-data; boundary=XyZ")

        response = await asyncio.wait_for(proxy(request, pipeline), timeout=5)

        assert response.status_code == CLIENT_CLOSED_REQUEST
        assert received == [b"--XyZ\r\n"]
