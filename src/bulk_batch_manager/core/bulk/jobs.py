# -*- coding: utf-8 -*-
"""
Lifecycle of a single remote bulk job: creation, batch submission (CSV
records or a query), closing, status polling with a deadline, and retrieval
of per-batch results.

A Job object is bound to exactly one remote job. Requests are issued one at
a time, in order, so batch ids map to chunks by position.
"""

import time
import logging
from typing import Iterator, List, Optional, Sequence

from tqdm.auto import tqdm

from .exceptions import (
    BatchCreationError,
    ConfigurationError,
    JobTimeout,
    RemoteServiceError,
)
from .records import (
    MAX_BATCH_SIZE,
    Record,
    chunk_records,
    collect_field_names,
    decode_csv,
    encode_records,
    iter_csv_records,
    validate_batch_size,
    validate_records,
)
from .wire import (
    CSV_CONTENT_TYPE,
    XML_CONTENT_TYPE,
    build_close_job_info,
    build_job_info,
    parse_info,
    parse_info_list,
    parse_result_list,
    raise_for_service_exception,
    service_exception,
)

OPERATIONS = ('insert', 'update', 'upsert', 'delete', 'query')
CONCURRENCY_MODES = ('Parallel', 'Serial')
PENDING_BATCH_STATES = ('Queued', 'InProgress')

DEFAULT_TIMEOUT = 1500     # seconds
DEFAULT_POLL_INTERVAL = 5  # seconds


class Job:
    """
    One remote bulk job.

    Attributes:
        job_id (str | None): Id assigned by the service on creation.
        batch_ids (list[str]): Submitted batch ids, in submission order.
    """

    def __init__(
            self,
            connection,
            operation: Optional[str] = None,
            sobject: Optional[str] = None,
            external_field: Optional[str] = None,
            nullable_fields: Optional[Sequence[str]] = None,
            job_id: Optional[str] = None
        ):
        if operation is not None and operation not in OPERATIONS:
            raise ConfigurationError(
                f"Unexpected operation {operation!r}, expected one of {OPERATIONS}"
            )
        self.connection = connection
        self.operation = operation
        self.sobject = sobject
        self.external_field = external_field if operation == 'upsert' else None
        self.nullable_fields = list(nullable_fields or [])
        self.job_id = job_id
        self.batch_ids: List[str] = []
        self.concurrency_mode = 'Parallel'
        self.pk_chunking = False

        if external_field and operation != 'upsert':
            logging.debug(f"Ignoring external id field {external_field!r} for {operation} job")

    def __repr__(self):
        return (f"Job(job_id={self.job_id!r}, operation={self.operation!r}, "
                f"sobject={self.sobject!r}, batches={len(self.batch_ids)})")

    #=========================================================================
    # Creation and Closing
    #=========================================================================

    def create_job(self, concurrency_mode: str = 'Parallel', pk_chunking: bool | int = False) -> str:
        """
        Create the remote job.

        Args:
            concurrency_mode (str): 'Parallel' or 'Serial'.
            pk_chunking (bool | int): Ask the service to split the input by
                primary key. An integer is sent as the chunk size.

        Returns:
            str: The job id assigned by the service.

        Raises:
            ConfigurationError: Unknown concurrency mode, before any request.
            RemoteServiceError: The service refused the job.
        """
        if concurrency_mode not in CONCURRENCY_MODES:
            raise ConfigurationError(
                f"Unexpected concurrency mode {concurrency_mode!r}, expected 'Parallel', 'Serial'"
            )
        if self.operation is None or not self.sobject:
            raise ConfigurationError("Both operation and object are required to create a job.")

        self.concurrency_mode = concurrency_mode
        self.pk_chunking = pk_chunking

        headers = {'Content-Type': XML_CONTENT_TYPE}
        if pk_chunking:
            headers['Sforce-Enable-PKChunking'] = _pk_chunking_header(pk_chunking)

        body = build_job_info(
            self.operation, self.sobject, self.external_field, concurrency_mode
        )
        response = self.connection.post_request('job', body, headers)
        info = raise_for_service_exception(parse_info(response))
        if not info.get('id'):
            raise RemoteServiceError(f"No job id in service response: {response!r}", code='MissingJobId')

        self.job_id = info['id']
        logging.info(f"Created {self.operation} job {self.job_id} on {self.sobject}")
        return self.job_id

    def close_job(self) -> dict:
        """Move the remote job to the Closed state and return the job info."""
        headers = {'Content-Type': XML_CONTENT_TYPE}
        response = self.connection.post_request(
            f"job/{self.job_id}", build_close_job_info(), headers
        )
        info = raise_for_service_exception(parse_info(response))
        logging.info(f"Closed job {self.job_id}")
        return info

    #=========================================================================
    # Batch Submission
    #=========================================================================

    def add_query(self, query: str) -> str:
        """Submit a query as the single batch of this job."""
        headers = {'Content-Type': CSV_CONTENT_TYPE}
        response = self.connection.post_request(
            f"job/{self.job_id}/batch/", query.encode('utf-8'), headers
        )
        batch_id = self._batch_id(response, 1, len(query))
        self.batch_ids.append(batch_id)
        logging.info(f"Added query batch {batch_id} to job {self.job_id}")
        return batch_id

    def add_batches(
            self,
            records: Sequence[Record],
            batch_size: int = MAX_BATCH_SIZE,
            progress: bool = False
        ) -> List[str]:
        """
        Split records into batches and submit them one by one, in order.

        Every batch shares the same header: the union of all field names.

        Args:
            records (list[dict]): Records to send.
            batch_size (int): Maximum records per batch (1 .. MAX_BATCH_SIZE).
            progress (bool): Show a progress bar over batches.

        Returns:
            list[str]: All batch ids of the job.

        Raises:
            ConfigurationError: Bad records container or batch size.
            RecordValidationError: A record cannot be serialized.
            BatchCreationError: The service did not return a batch id; later
                batches are not sent.
        """
        records = validate_records(records)
        validate_batch_size(batch_size)

        keys = collect_field_names(records)
        chunks = chunk_records(records, batch_size)
        logging.info(f"Submitting {len(records)} records in {len(chunks)} batches to job {self.job_id}")

        for chunk in tqdm(chunks, desc="Submitting batches", disable=not progress):
            self.batch_ids.append(self._add_batch(keys, chunk))
        return self.batch_ids

    def _add_batch(self, keys, chunk) -> str:
        text = encode_records(keys, chunk, self.nullable_fields)
        headers = {'Content-Type': CSV_CONTENT_TYPE}
        response = self.connection.post_request(
            f"job/{self.job_id}/batch/", text.encode('utf-8'), headers
        )
        batch_id = self._batch_id(response, len(chunk), len(text))
        logging.debug(f"Batch {batch_id} created with {len(chunk)} records")
        return batch_id

    def _batch_id(self, response, batch_size, payload_length) -> str:
        """Batch id from a batchInfo answer, carrying any service exception code."""
        info = parse_info(response)
        exception = service_exception(info)
        if exception is not None:
            message, code = exception
            raise BatchCreationError(
                self.job_id, batch_size, payload_length, response,
                code=code, service_message=message,
            )
        if not info.get('id'):
            raise BatchCreationError(self.job_id, batch_size, payload_length, response)
        return info['id']

    #=========================================================================
    # Status
    #=========================================================================

    def check_job_status(self) -> dict:
        response = self.connection.get_request(f"job/{self.job_id}", {})
        return raise_for_service_exception(parse_info(response))

    def check_batch_status(self, batch_id: Optional[str] = None):
        """
        Status of one batch, or of every batch of the job when batch_id is None.

        Returns:
            dict | list[dict]: batchInfo fields (id, state, stateMessage, ...).
        """
        path = f"job/{self.job_id}/batch"
        if batch_id is None:
            response = self.connection.get_request(path, {})
            raise_for_service_exception(parse_info(response))
            return parse_info_list(response, 'batchInfo')

        response = self.connection.get_request(f"{path}/{batch_id}", {})
        return raise_for_service_exception(parse_info(response))

    def load_batches(self) -> List[str]:
        """Fill batch_ids from the service, for jobs recovered by id."""
        batches = self.check_batch_status()
        known = set(self.batch_ids)
        self.batch_ids.extend(b['id'] for b in batches if b.get('id') and b['id'] not in known)
        logging.info(f"Job {self.job_id} has {len(self.batch_ids)} batches")
        return self.batch_ids

    #=========================================================================
    # Waiting and Results
    #=========================================================================

    def get_job_result(
            self,
            return_result: bool,
            timeout: float = DEFAULT_TIMEOUT,
            poll_interval: float = DEFAULT_POLL_INTERVAL
        ) -> List[dict]:
        """
        Wait for every batch to leave Queued/InProgress and collect their statuses.

        Polling stops as soon as the job is not Closed. Batches are only
        collected once all outstanding ones are ready, and are returned in
        submission order.

        Args:
            return_result (bool): Attach parsed results to Completed batches
                under the 'response' key.
            timeout (float): Seconds before giving up.
            poll_interval (float): Seconds between polling rounds.

        Returns:
            list[dict]: Batch statuses in submission order.

        Raises:
            JobTimeout: The deadline passed with batches still outstanding.
                Statuses collected so far are discarded.
        """
        deadline = time.monotonic() + timeout
        pending = list(self.batch_ids)
        collected = []
        rounds = 0

        while True:
            rounds += 1
            job_state = self.check_job_status().get('state')
            if job_state != 'Closed':
                logging.info(f"Job {self.job_id} is {job_state}, not waiting for its batches")
                break

            statuses = {}
            ready = all(
                self._batch_ready(batch_id, statuses) for batch_id in pending
            )
            if ready:
                collected.extend(statuses[batch_id] for batch_id in pending)
                pending = []
            if not pending:
                break

            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise JobTimeout(self.job_id, pending, timeout)
            logging.debug(f"Round {rounds}: {len(pending)} batches of job {self.job_id} still processing")
            time.sleep(min(poll_interval, remaining))

        for status in collected:
            if status.get('state') == 'Completed' and return_result:
                status['response'] = self.get_batch_result(status['id'])
        return collected

    def _batch_ready(self, batch_id, statuses) -> bool:
        status = statuses[batch_id] = self.check_batch_status(batch_id)
        return status.get('state') not in PENDING_BATCH_STATES

    def get_batch_result(self, batch_id: str):
        """
        Results of one batch.

        Query batches give a lazy iterator of records streamed from the
        service. DML batches give a list with one row per submitted record,
        headers lowercased (id, success, created, error).

        Raises:
            RemoteServiceError: The service answered with an exception
                document instead of result rows.
        """
        if self.operation == 'query':
            return self.results(batch_id)

        path = f"job/{self.job_id}/batch/{batch_id}/result"
        response = self.connection.get_request(path, {'Content-Type': XML_CONTENT_TYPE})
        if response and response.lstrip().startswith(b'<'):
            # error document instead of CSV rows
            raise_for_service_exception(parse_info(response))
        return decode_csv(response or b'', lowercase_headers=True)

    def results(self, batch_id: str) -> Iterator[dict]:
        """
        Lazily stream every result set of a query batch.

        Each result set is read over its own connection, closed when the set
        is exhausted or when the iterator is closed early.
        """
        path = f"job/{self.job_id}/batch/{batch_id}/result"
        response = self.connection.get_request(path, {'Content-Type': XML_CONTENT_TYPE})
        raise_for_service_exception(parse_info(response))
        result_ids = parse_result_list(response)
        logging.debug(f"Batch {batch_id} has {len(result_ids)} result sets")

        for result_id in result_ids:
            with self.connection.open_stream(f"{path}/{result_id}", {'Content-Type': 'text/csv'}) as io:
                yield from iter_csv_records(io.lines())


def _pk_chunking_header(pk_chunking) -> str:
    if pk_chunking is True:
        return 'true'
    if isinstance(pk_chunking, int) and pk_chunking > 0:
        return f"chunkSize={pk_chunking}"
    raise ConfigurationError(f"Invalid pk_chunking value {pk_chunking!r}")
