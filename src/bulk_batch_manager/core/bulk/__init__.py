"""
Bulk job processing for Bulk Batch Manager.

Submodules:
    jobs:       Job lifecycle (create, add batches, close, poll, results)
    records:    Header union, chunking, serialization, CSV codec
    stream:     HttpIo, the streaming result reader
    wire:       XML job/batch descriptors
    summary:    Batch state summaries
    exceptions: Error taxonomy
    manager:    BulkBatchManager orchestration and operation counters

Example Usage:
    import bulk_batch_manager as bbm

    job = bbm.bulk.jobs.Job(connection, operation='update', sobject='Account')
    job.create_job()
    job.add_batches(records, batch_size=2000)
    job.close_job()
    batches = job.get_job_result(return_result=True, timeout=600)
"""

from . import exceptions
from . import records
from . import stream
from . import wire
from . import jobs
from . import summary
from . import manager

__all__ = [
    'exceptions',  # bbm.bulk.exceptions.*
    'records',     # bbm.bulk.records.*
    'stream',      # bbm.bulk.stream.*
    'wire',        # bbm.bulk.wire.*
    'jobs',        # bbm.bulk.jobs.*
    'summary',     # bbm.bulk.summary.*
    'manager',     # bbm.bulk.manager.*
]
