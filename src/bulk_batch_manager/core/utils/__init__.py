"""
Shared utilities for Bulk Batch Manager.

Submodules:
    clients:     HTTP connection to the bulk service
    registry:    Persistent journal of created jobs
    datasource:  Reading records and writing results (JSONL, CSV, Parquet)
    misc:        Internal utilities (internal)
    environment: Environment configuration (internal)
"""

from . import clients     # Connection creation
from . import registry    # Job journal
from . import datasource  # Record files

__all__ = [
    'clients',      # bbm.utils.clients.*
    'registry',     # bbm.utils.registry.*
    'datasource',   # bbm.utils.datasource.*
]
