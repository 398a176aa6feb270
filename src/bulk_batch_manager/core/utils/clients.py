# -*- coding: utf-8 -*-

import os
import logging
import threading
from contextlib import contextmanager
from typing import Optional

import httpx
from tenacity import (Retrying, retry_if_exception_type, stop_after_attempt,
                      wait_exponential)

from ..bulk.exceptions import TransportError
from ..bulk.stream import HttpIo

API_VERSION = '32.0'
REQUEST_TIMEOUT = 60.0
GET_MAX_ATTEMPTS = 3


class BulkConnection:
    """
    Authenticated HTTP access to the bulk service.

    Requests are sent relative to <instance_url>/services/async/<version>/
    with the session id header. Bodies of 2xx and 4xx answers are returned
    as bytes, since error answers carry the service's exception document.
    Server errors and connection failures raise TransportError.

    GET requests are retried on connection errors; POST requests never are.
    """

    def __init__(
            self,
            instance_url: str,
            session_id: str,
            api_version: str = API_VERSION,
            timeout: float = REQUEST_TIMEOUT,
            get_max_attempts: int = GET_MAX_ATTEMPTS,
            retry_wait=None,
            transport: Optional[httpx.BaseTransport] = None
        ):
        self.instance_url = instance_url.rstrip('/')
        self.session_id = session_id
        self.api_version = api_version
        self.path_prefix = f"/services/async/{api_version}/"
        self.timeout = timeout
        self._transport = transport
        self._client = httpx.Client(
            base_url=self.instance_url + self.path_prefix,
            timeout=httpx.Timeout(timeout),
            transport=transport,
        )
        self._retrying = Retrying(
            retry=retry_if_exception_type(httpx.TransportError),
            wait=retry_wait if retry_wait is not None else wait_exponential(min=1, max=30),
            stop=stop_after_attempt(get_max_attempts),
            reraise=True,
        )
        self._lock = threading.Lock()
        self._counters = {'get': 0, 'post': 0}

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()

    def close(self):
        self._client.close()

    @property
    def counters(self) -> dict:
        with self._lock:
            return dict(self._counters)

    def _count(self, method: str):
        with self._lock:
            self._counters[method] += 1

    def url_for(self, path: str) -> str:
        return f"{self.instance_url}{self.path_prefix}{path}"

    def _headers(self, headers: Optional[dict]) -> dict:
        merged = dict(headers or {})
        merged['X-SFDC-Session'] = self.session_id
        return merged

    #=========================================================================
    # Requests
    #=========================================================================

    def post_request(self, path: str, body, headers: Optional[dict] = None) -> bytes:
        logging.debug(f"POST {path}")
        self._count('post')
        try:
            response = self._client.post(path, content=body, headers=self._headers(headers))
        except httpx.HTTPError as e:
            raise TransportError(f"POST {path} failed: {e}") from e
        return self._body(response)

    def get_request(self, path: str, headers: Optional[dict] = None) -> bytes:
        logging.debug(f"GET {path}")
        try:
            response = self._retrying(self._get, path, headers)
        except httpx.HTTPError as e:
            raise TransportError(f"GET {path} failed: {e}") from e
        return self._body(response)

    def _get(self, path, headers):
        self._count('get')
        return self._client.get(path, headers=self._headers(headers))

    @contextmanager
    def open_stream(self, path: str, headers: Optional[dict] = None):
        """Stream one response body through an HttpIo reader, closed on exit."""
        logging.debug(f"GET (stream) {path}")
        self._count('get')
        try:
            with HttpIo.open(
                self.url_for(path),
                headers=self._headers(headers),
                timeout=self.timeout,
                transport=self._transport,
            ) as io:
                yield io
        except httpx.HTTPStatusError as e:
            raise TransportError(
                f"GET {path} failed: {e}", status_code=e.response.status_code
            ) from e
        except httpx.HTTPError as e:
            raise TransportError(f"GET {path} failed: {e}") from e

    @staticmethod
    def _body(response: httpx.Response) -> bytes:
        if response.status_code >= 500:
            raise TransportError(
                f"{response.request.method} {response.request.url.path} answered "
                f"{response.status_code}: {response.text[:200]}",
                status_code=response.status_code,
            )
        return response.content


def create_bulk_connection(instance_url=None, session_id=None, api_version=None, **kwargs):
    """
    Create a BulkConnection, reading missing settings from the environment.

    Args:
        instance_url (str): Service host URL. Defaults to BULK_INSTANCE_URL.
        session_id (str): Authenticated session id. Defaults to BULK_SESSION_ID.
        api_version (str): Defaults to BULK_API_VERSION, then API_VERSION.
    """
    if instance_url is None:
        instance_url = os.getenv('BULK_INSTANCE_URL')
    if not instance_url:
        raise ValueError("No instance URL provided or found in environment.")

    if session_id is None:
        session_id = os.getenv('BULK_SESSION_ID')
    if not session_id:
        raise ValueError("No session id provided or found in environment.")

    if api_version is None:
        api_version = os.getenv('BULK_API_VERSION') or API_VERSION

    connection = BulkConnection(instance_url, session_id, api_version=api_version, **kwargs)
    logging.info(f"Bulk connection created for {connection.instance_url} (API {api_version}).")
    return connection
