# -*- coding: utf-8 -*-

"""
Error taxonomy for bulk job operations.

None of these are retried by the core. Batches that the service itself
marks as Failed or NotProcessed are reported as data, not raised.
"""


class BulkApiError(Exception):
    """Base class for every error raised by the bulk job core."""


class ConfigurationError(BulkApiError, ValueError):
    """Invalid option (concurrency mode, batch size, operation), detected before any request."""


class TransportError(BulkApiError):
    """Connection or protocol failure while talking to the service."""

    def __init__(self, message, status_code=None):
        super().__init__(message)
        self.status_code = status_code


class RemoteServiceError(BulkApiError):
    """The service answered with a structured exception payload."""

    def __init__(self, message, code=None):
        self.message = message
        self.code = code
        text = f"{message} ({code})" if code else message
        super().__init__(text)


class BatchCreationError(RemoteServiceError):
    """
    A batch was posted but the service did not return a usable batch id.

    When the service answered with an exception document, its code and
    message are kept in code and service_message.
    """

    def __init__(self, job_id, batch_size, payload_length, response=None,
                 code=None, service_message=None):
        self.job_id = job_id
        self.batch_size = batch_size
        self.payload_length = payload_length
        self.response = response
        self.service_message = service_message
        reason = service_message if code else f"service response: {response!r}"
        super().__init__(
            f"Failed to create a new batch, {reason}, "
            f"job id {job_id}, batch size: {batch_size} records, "
            f"{payload_length} characters",
            code,
        )


class RecordValidationError(BulkApiError):
    """A record field cannot be serialized (missing required value or unsupported type)."""

    def __init__(self, field, record, reason):
        self.field = field
        self.record = record
        self.reason = reason
        super().__init__(f"{reason}: field {field!r} in record {record!r}")


class JobTimeout(BulkApiError, TimeoutError):
    """Polling a job exceeded the caller's timeout. Nothing collected so far is returned."""

    def __init__(self, job_id, batch_ids, timeout=None):
        self.job_id = job_id
        self.batch_ids = list(batch_ids)
        self.timeout = timeout
        super().__init__(
            f"Timeout waiting for the service to process job batches "
            f"{self.batch_ids} of job {job_id}."
        )
