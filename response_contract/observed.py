"""
The response under test.

The body is a single-use stream. Validation takes it, reads it once and puts
a fresh snapshot of the same bytes back, so later consumers can still read
the body afterwards.
"""

import io
from typing import Any, Iterable, Mapping, Optional, Tuple, Union

from werkzeug.datastructures import Headers

HeadersLike = Union[Headers, Mapping[str, str], Iterable[Tuple[str, str]]]


class ResumedBody:
    """
    Body stream restored after an interrupted read.

    Yields the bytes already consumed, then whatever is left of the
    original stream. Closing it closes the original stream.
    """

    def __init__(self, prefix: bytes, stream: Any):
        self._prefix = io.BytesIO(prefix)
        self._stream = stream

    def read(self, size: Optional[int] = -1) -> bytes:
        if size is None or size < 0:
            chunks = [self._prefix.read()]
            while True:
                chunk = self._stream.read()
                if not chunk:
                    return b"".join(chunks)
                chunks.append(chunk)
        data = self._prefix.read(size)
        if len(data) < size:
            data += self._stream.read(size - len(data)) or b""
        return data

    def close(self) -> None:
        self._prefix.close()
        self._stream.close()


class ObservedResponse:
    """Method of the originating request, status, headers and body stream."""

    def __init__(
        self,
        status: int,
        headers: Optional[HeadersLike] = None,
        body: Any = None,
        method: str = "GET",
    ):
        self.method = method.upper()
        self.status = int(status)
        self.headers = headers if isinstance(headers, Headers) else Headers(headers or [])
        if isinstance(body, (bytes, bytearray)):
            body = io.BytesIO(bytes(body))
        elif isinstance(body, str):
            body = io.BytesIO(body.encode("utf-8"))
        self.body = body

    def __repr__(self):
        return f"<ObservedResponse {self.method} {self.status}>"

    @property
    def content_type(self) -> str:
        return self.headers.get("Content-Type", "")

    def take_body(self) -> Any:
        """Detach the body stream; the response has no body until restored."""
        body, self.body = self.body, None
        return body

    def set_body_bytes(self, data: bytes) -> None:
        """Replace the body with a freshly readable snapshot of data."""
        self.body = io.BytesIO(data)

    def set_body(self, stream: Any) -> None:
        """Put a readable stream back as the body."""
        self.body = stream

    def body_bytes(self) -> bytes:
        """Read the whole body and leave an identical snapshot in its place."""
        body = self.take_body()
        if body is None:
            self.set_body_bytes(b"")
            return b""
        try:
            data = body.read()
        finally:
            body.close()
        self.set_body_bytes(data)
        return data

    @classmethod
    def from_flask(cls, response, method: str = "GET") -> "ObservedResponse":
        """
        Adapt a Flask/werkzeug response.

        The body is buffered with get_data(), so the Flask response itself is
        left readable.
        """
        return cls(
            status=response.status_code,
            headers=Headers(response.headers),
            body=response.get_data(),
            method=method,
        )
