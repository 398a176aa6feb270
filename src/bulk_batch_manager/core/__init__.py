"""
Core functionality for Bulk Batch Manager.

Architecture:
    bulk/       - Bulk job processing
      ├── jobs/       - Job lifecycle (create, submit, close, poll, results)
      ├── records/    - Chunking, record serialization, CSV codec
      ├── stream/     - Incremental reader over live response bodies
      ├── wire/       - XML job and batch descriptors
      ├── summary/    - Batch state summaries
      ├── exceptions/ - Error taxonomy
      └── manager/    - High-level orchestration and counters

    utils/      - Shared utilities and infrastructure
      ├── clients/     - HTTP connection to the service
      ├── registry/    - Persistent job journal
      ├── datasource/  - Record files in and out
      ├── misc/        - General utilities (internal)
      └── environment/ - Environment setup (internal)
"""

from . import bulk
from . import utils

from .bulk.manager import BulkBatchManager
from .bulk.jobs import Job

__all__ = [
    'bulk',
    'utils',
    'BulkBatchManager',
    'Job',
]
