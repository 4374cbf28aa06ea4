"""Request and response carriers for the forwarding pipeline.

These are plain data holders so the pipeline can be exercised without a
live HTTP stack. They are never mutated once built.
"""

from dataclasses import dataclass, field
from typing import AsyncIterator, Optional, Union

Body = Union[bytes, AsyncIterator[bytes]]


@dataclass(frozen=True)
class InboundRequest:
    """A caller request as received by the gateway."""

    method: str
    path: str
    query_string: str = ""
    headers: tuple[tuple[str, str], ...] = ()
    body: Body = b""

    def header(self, name: str) -> Optional[str]:
        """Return the first value of a header, matched case-insensitively."""
        name = name.lower()
        for key, value in self.headers:
            if key.lower() == name:
                return value
        return None

    @property
    def content_type(self) -> str:
        return (self.header("content-type") or "").lower()

    @property
    def is_multipart(self) -> bool:
        return self.content_type.startswith("multipart/")

    @property
    def is_json(self) -> bool:
        media_type = self.content_type.split(";", 1)[0].strip()
        return media_type == "application/json" or media_type.endswith("+json")

    @property
    def credential(self) -> Optional[str]:
        """Raw ``authorization`` header value."""
        return self.header("authorization")


@dataclass
class GatewayResponse:
    """Response handed back to the caller."""

    status_code: int
    headers: list[tuple[str, str]] = field(default_factory=list)
    body: bytes = b""
