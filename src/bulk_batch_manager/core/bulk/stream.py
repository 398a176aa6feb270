# -*- coding: utf-8 -*-
"""
Incremental reader over a live HTTP response body.

Query results can be far larger than memory. HttpIo keeps only the bytes
not yet handed to the caller and exposes a "read until terminator" call that
the CSV decoder is driven with.
"""

import logging
from contextlib import contextmanager
from typing import Iterable, Iterator, Optional

import httpx

READ_TIMEOUT = 60.0


class HttpIo:
    """Buffered, forward-only reader over an iterable of byte chunks."""

    def __init__(self, chunks: Iterable[bytes]):
        self._chunks = iter(chunks)
        self._buffer = bytearray()
        self._eof = False
        self._closed = False

    @classmethod
    @contextmanager
    def open(
            cls,
            url: str,
            headers: Optional[dict] = None,
            timeout: float = READ_TIMEOUT,
            transport: Optional[httpx.BaseTransport] = None
        ):
        """
        Open a persistent GET connection and yield a reader over its body.

        The connection is closed when the with-block ends, whether by normal
        completion, an exception in the caller, or a generator being closed.

        Args:
            url: Absolute URL of the body to stream.
            headers: Request headers (session, content type).
            timeout: Connect, read and write timeout in seconds.
            transport: Optional httpx transport, mostly useful in tests.

        Raises:
            httpx.HTTPError: On connection failure or a non-2xx status.
        """
        client = httpx.Client(
            headers=headers or {},
            timeout=httpx.Timeout(timeout),
            transport=transport,
        )
        try:
            with client.stream('GET', url) as response:
                response.raise_for_status()
                logging.debug(f"Streaming result body from {response.url.path}")
                io = cls(response.iter_bytes())
                try:
                    yield io
                finally:
                    io.close()
        finally:
            client.close()

    @property
    def eof(self) -> bool:
        return self._eof

    def close(self):
        if self._closed:
            return
        self._closed = True
        close = getattr(self._chunks, 'close', None)
        if close is not None:
            close()

    def readuntil(self, terminator: bytes = b'\n') -> Optional[bytes]:
        """
        Return the next bytes up to and including terminator.

        At end of stream, whatever is still buffered is returned once; after
        that every call returns None.
        """
        start = 0
        idx = self._buffer.find(terminator)
        while idx < 0:
            start = max(0, len(self._buffer) - len(terminator) + 1)
            if not self._fill():
                self._eof = True
                if self._buffer:
                    return self._consume(len(self._buffer))
                return None
            idx = self._buffer.find(terminator, start)
        return self._consume(idx + len(terminator))

    gets = readuntil

    def lines(self, encoding: str = 'utf-8') -> Iterator[str]:
        """Yield decoded lines, each keeping its trailing newline."""
        first = True
        while True:
            line = self.readuntil(b'\n')
            if line is None:
                return
            text = line.decode(encoding)
            if first:
                text = text.lstrip('\ufeff')
                first = False
            yield text

    def _fill(self) -> bool:
        if self._eof or self._closed:
            return False
        for chunk in self._chunks:
            if chunk:
                self._buffer += chunk
                return True
        return False

    def _consume(self, length: int) -> bytes:
        data = bytes(self._buffer[:length])
        del self._buffer[:length]
        return data
