# -*- coding: utf-8 -*-

import logging
import threading
from typing import Callable, List, Optional, Sequence

from .jobs import DEFAULT_POLL_INTERVAL, DEFAULT_TIMEOUT, Job
from .records import MAX_BATCH_SIZE, Record, validate_batch_size, validate_records
from .summary import log_batch_summary


OPERATION_NAMES = ('upsert', 'update', 'create', 'delete', 'query')


class OperationCounters:
    """Thread-safe invocation counts per operation name."""

    def __init__(self, names: Sequence[str] = OPERATION_NAMES):
        self._lock = threading.Lock()
        self._counts = {name: 0 for name in names}

    def increment(self, name: str) -> int:
        with self._lock:
            self._counts[name] = self._counts.get(name, 0) + 1
            return self._counts[name]

    def snapshot(self) -> dict:
        with self._lock:
            return dict(self._counts)


class BulkBatchManager:
    """
    Runs bulk operations end to end: create the job, submit its batches,
    close it, then optionally wait for the batches and collect their results.

    Example:
        with create_bulk_connection() as connection:
            manager = BulkBatchManager(connection)
            manager.on_job_created(lambda job: print(job.job_id))
            result = manager.upsert('Account', records, external_field='Id', get_response=True)
            for row in result['batches'][0]['response']:
                ...
    """

    def __init__(self, connection, counters: Optional[OperationCounters] = None):
        self.connection = connection
        self._counters = counters if counters is not None else OperationCounters()
        self._job_created_listeners: List[Callable[[Job], None]] = []

    #=========================================================================
    # Operations
    #=========================================================================

    def upsert(self, sobject: str, records: Sequence[Record], **options) -> dict:
        return self.do_operation('upsert', sobject, records, **options)

    def update(self, sobject: str, records: Sequence[Record], **options) -> dict:
        return self.do_operation('update', sobject, records, **options)

    def create(self, sobject: str, records: Sequence[Record], **options) -> dict:
        return self.do_operation('insert', sobject, records, **options)

    insert = create

    def delete(self, sobject: str, records: Sequence[Record], **options) -> dict:
        return self.do_operation('delete', sobject, records, **options)

    def query(self, sobject: str, query: str, **options) -> dict:
        """Run a query job. Unlike DML operations, results are requested by default."""
        options.setdefault('get_response', True)
        return self.do_operation('query', sobject, query, **options)

    def do_operation(
            self,
            operation: str,
            sobject: str,
            workload,
            external_field: Optional[str] = None,
            nullable_fields: Optional[Sequence[str]] = None,
            batch_size: int = MAX_BATCH_SIZE,
            close_job: bool = True,
            pk_chunking: bool | int = False,
            get_response: bool = False,
            timeout: float = DEFAULT_TIMEOUT,
            concurrency_mode: str = 'Parallel',
            poll_interval: float = DEFAULT_POLL_INTERVAL,
            progress: bool = False
        ) -> dict:
        """
        Run one bulk operation.

        Args:
            operation (str): insert, update, upsert, delete or query.
            sobject (str): Target object name, e.g. 'Account'.
            workload: Records for DML operations, a query string for queries.
            external_field (str): External id field, only used by upsert.
            nullable_fields (list[str]): Fields allowed to be sent empty.
            batch_size (int): Records per batch, 1 .. MAX_BATCH_SIZE.
            close_job (bool): Close the job after submission. Ignored (never
                closed) when pk_chunking is enabled.
            pk_chunking (bool | int): Enable primary key chunking.
            get_response (bool): Wait for the batches and attach results.
            timeout (float): Seconds to wait for the batches.
            concurrency_mode (str): 'Parallel' or 'Serial'.
            poll_interval (float): Seconds between status polls.
            progress (bool): Show a progress bar while submitting batches.

        Returns:
            dict: Close response fields (empty when not closed) with 'id' set
            to the job id, plus 'batches' when get_response is True.
        """
        name = 'create' if operation == 'insert' else operation
        self._counters.increment(name)
        logging.debug(f"Starting {operation} operation on {sobject}")

        if operation != 'query':
            workload = validate_records(workload)
            validate_batch_size(batch_size)

        job = Job(
            self.connection,
            operation=operation,
            sobject=sobject,
            external_field=external_field,
            nullable_fields=nullable_fields,
        )
        job.create_job(concurrency_mode=concurrency_mode, pk_chunking=pk_chunking)
        self._notify_job_created(job)

        if operation == 'query':
            job.add_query(workload)
        else:
            job.add_batches(workload, batch_size, progress=progress)

        response = job.close_job() if close_job and not pk_chunking else {}
        response['id'] = job.job_id
        if get_response:
            batches = job.get_job_result(True, timeout, poll_interval)
            log_batch_summary(job.job_id, batches)
            response['batches'] = batches
        return response

    #=========================================================================
    # Recovery
    #=========================================================================

    def job_from_id(self, job_id: str, **kwargs) -> Job:
        """Bind a Job object to an existing remote job."""
        return Job(self.connection, job_id=job_id, **kwargs)

    def wait_for_job(
            self,
            job_id: str,
            operation: str,
            get_response: bool = True,
            timeout: float = DEFAULT_TIMEOUT,
            poll_interval: float = DEFAULT_POLL_INTERVAL
        ) -> List[dict]:
        """
        Wait for a job started earlier (possibly by another process) and
        collect its batches.
        """
        job = self.job_from_id(job_id, operation=operation)
        job.load_batches()
        batches = job.get_job_result(get_response, timeout, poll_interval)
        log_batch_summary(job_id, batches)
        return batches

    #=========================================================================
    # Observability
    #=========================================================================

    def on_job_created(self, callback: Callable[[Job], None]):
        """
        Register a callback receiving every created job before any batch is
        sent, so its id can be persisted for recovery. Returns the callback,
        so it can be used as a decorator.
        """
        self._job_created_listeners.append(callback)
        return callback

    def _notify_job_created(self, job: Job):
        for callback in self._job_created_listeners:
            callback(job)

    @property
    def counters(self) -> dict:
        http = self.connection.counters
        operations = self._counters.snapshot()
        return {
            'http_get': http.get('get', 0),
            'http_post': http.get('post', 0),
            **operations,
        }
