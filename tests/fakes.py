"""Scripted connection and XML payload builders shared by the tests."""

from __future__ import annotations

from contextlib import contextmanager

from bulk_batch_manager.core.bulk.stream import HttpIo

NS = 'http://www.force.com/2009/06/asyncapi/dataload'


def _xml(root: str, **fields) -> bytes:
    body = ''.join(f"<{k}>{v}</{k}>" for k, v in fields.items())
    return f'<?xml version="1.0" encoding="UTF-8"?><{root} xmlns="{NS}">{body}</{root}>'.encode()


def job_info(job_id: str = 'JOB1', state: str = 'Open', **extra) -> bytes:
    return _xml('jobInfo', id=job_id, state=state, **extra)


def batch_info(batch_id: str, state: str = 'Queued', job_id: str = 'JOB1', **extra) -> bytes:
    return _xml('batchInfo', id=batch_id, jobId=job_id, state=state, **extra)


def batch_info_list(*batches: tuple[str, str]) -> bytes:
    items = ''.join(
        f"<batchInfo><id>{batch_id}</id><state>{state}</state></batchInfo>"
        for batch_id, state in batches
    )
    return f'<batchInfoList xmlns="{NS}">{items}</batchInfoList>'.encode()


def result_list(*result_ids: str) -> bytes:
    items = ''.join(f"<result>{r}</result>" for r in result_ids)
    return f'<result-list xmlns="{NS}">{items}</result-list>'.encode()


def service_error(code: str, message: str) -> bytes:
    return _xml('error', exceptionCode=code, exceptionMessage=message)


class FakeConnection:
    """
    Scripted stand-in for BulkConnection.

    Responses are queued per (method, path); the last queued response of a
    route is repeated once the others are used up.
    """

    def __init__(self):
        self.routes: dict[tuple[str, str], list] = {}
        self.streams: dict[str, list[bytes]] = {}
        self.requests: list[tuple[str, str, bytes | None, dict]] = []
        self.opened_streams: list[str] = []
        self.closed_streams: list[str] = []
        self.counters = {'get': 0, 'post': 0}

    def add(self, method: str, path: str, *responses) -> None:
        self.routes.setdefault((method, path), []).extend(responses)

    def add_stream(self, path: str, *chunks: bytes) -> None:
        self.streams[path] = list(chunks)

    def _respond(self, method: str, path: str):
        queue = self.routes.get((method, path))
        if not queue:
            raise AssertionError(f"Unexpected request {method} {path}")
        response = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(response, Exception):
            raise response
        return response

    def post_request(self, path, body, headers=None):
        self.counters['post'] += 1
        self.requests.append(('POST', path, body, dict(headers or {})))
        return self._respond('POST', path)

    def get_request(self, path, headers=None):
        self.counters['get'] += 1
        self.requests.append(('GET', path, None, dict(headers or {})))
        return self._respond('GET', path)

    @contextmanager
    def open_stream(self, path, headers=None):
        self.counters['get'] += 1
        self.opened_streams.append(path)
        io = HttpIo(iter(self.streams[path]))
        try:
            yield io
        finally:
            io.close()
            self.closed_streams.append(path)

    def posts(self, path: str | None = None):
        return [r for r in self.requests if r[0] == 'POST' and (path is None or r[1] == path)]
