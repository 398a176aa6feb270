# -*- coding: utf-8 -*-

import json
import logging
import click

from ..core.bulk.manager import BulkBatchManager
from ..core.bulk.records import MAX_BATCH_SIZE
from ..core.utils.clients import create_bulk_connection
from ..core.utils.datasource import write_records
from ..core.utils.registry import JobRegistry, get_registry
from ..core.utils.misc import ensure_output_path, mask_path


def setup_logging(verbose=False, quiet=False):
    """Configure logging for CLI execution."""
    if quiet:
        level = logging.WARNING
    elif verbose:
        level = logging.DEBUG
    else:
        level = logging.INFO

    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        force=True  # Override any existing configuration
    )

    # Reduce noise from external libraries in non-verbose mode
    if not verbose:
        logging.getLogger("httpx").setLevel(logging.WARNING)
        logging.getLogger("httpcore").setLevel(logging.WARNING)

    if verbose:
        logger = logging.getLogger(__name__)
        logger.debug("CLI logging setup completed")


def _validate_positive_number_callback(ctx, param, value):
    """Validate that the provided value is a positive number."""
    if value is not None and value <= 0:
        raise click.BadParameter("Value must be a positive number.")
    return value


def _validate_batch_size_callback(ctx, param, value):
    if value is not None and not 0 < value <= MAX_BATCH_SIZE:
        raise click.BadParameter(f"Batch size must be between 1 and {MAX_BATCH_SIZE}.")
    return value


#=======================================================================
# Context Helpers
#=======================================================================

def _get_manager(ctx) -> BulkBatchManager:
    """Build (once) the manager for this invocation, exiting when settings are missing."""
    if 'manager' in ctx.obj:
        return ctx.obj['manager']

    connection = ctx.obj.get('connection')
    if connection is None:
        try:
            connection = create_bulk_connection(
                instance_url=ctx.obj.get('instance_url'),
                session_id=ctx.obj.get('session_id'),
                api_version=ctx.obj.get('api_version'),
            )
        except ValueError as e:
            logging.error(f"Cannot connect: {e}")
            logging.info("Set BULK_INSTANCE_URL and BULK_SESSION_ID in your environment "
                          "or in a .env file, or pass --instance-url and --session-id.")
            raise SystemExit(1)
        ctx.call_on_close(connection.close)
        ctx.obj['connection'] = connection

    manager = BulkBatchManager(connection)
    ctx.obj['manager'] = manager
    return manager


def _get_registry(ctx) -> JobRegistry:
    if 'registry' not in ctx.obj:
        registry_file = ctx.obj.get('registry_file')
        ctx.obj['registry'] = JobRegistry(registry_file) if registry_file else get_registry()
    return ctx.obj['registry']


#=======================================================================
# Result Helpers
#=======================================================================

def _iter_result_rows(batches, stats):
    """Yield every result row of every batch, counting rows and failed rows."""
    for batch in batches:
        for row in batch.get('response') or []:
            stats['rows'] += 1
            if str(row.get('success', '')).lower() == 'false':
                stats['failed'] += 1
            yield row


def _report_results(batches, output=None, echo_rows=False):
    """Write or print result rows and log what was found."""
    stats = {'rows': 0, 'failed': 0}
    rows = _iter_result_rows(batches, stats)

    if output:
        ensure_output_path(output, description="Output folder")
        write_records(rows, output)
        logging.info(f"Wrote {stats['rows']} result rows to {mask_path(output)}")
    elif echo_rows:
        for row in rows:
            click.echo(json.dumps(row))
    else:
        for _ in rows:
            pass

    if stats['failed']:
        logging.warning(f"{stats['failed']} of {stats['rows']} records failed.")
    return stats


def _print_job_info(info, batches):
    click.echo(f"Job {info.get('id')}: {info.get('operation')} on {info.get('object')}, state {info.get('state')}")
    for batch in batches:
        line = f"  - Batch {batch.get('id')}: {batch.get('state')}"
        if batch.get('numberRecordsProcessed'):
            line += f", {batch['numberRecordsProcessed']} processed, {batch.get('numberRecordsFailed', 0)} failed"
        if batch.get('stateMessage'):
            line += f" ({batch['stateMessage']})"
        click.echo(line)


def _log_job_left_open(job_id, operation):
    """Open jobs (primary key chunking, --no-close) are collected later."""
    logging.warning(f"Job {job_id} is left open, no results collected yet.")
    logging.info(f"Run 'bulkbm close {job_id}' once all its batches are created, "
                 f"then 'bulkbm resume {job_id} --operation {operation}'.")
