# -*- coding: utf-8 -*-

import logging
import click

from ..core.bulk.exceptions import BulkApiError, JobTimeout
from ..core.bulk.jobs import DEFAULT_POLL_INTERVAL, DEFAULT_TIMEOUT, OPERATIONS
from ..core.bulk.records import MAX_BATCH_SIZE
from ..core.bulk.summary import summarize_batch_states
from ..core.utils.datasource import read_records
from ..core.utils.misc import mask_path
from .utils import (
    setup_logging,
    _validate_positive_number_callback,
    _validate_batch_size_callback,
    _get_manager,
    _get_registry,
    _report_results,
    _print_job_info,
    _log_job_left_open,
)


@click.group()
@click.option(
    '-v', '--verbose', is_flag=True,
    help='Enable verbose (DEBUG) logging'
)
@click.option(
    '-q', '--quiet', is_flag=True,
    help='Only show warnings and errors'
)
@click.option(
    '--instance-url', envvar='BULK_INSTANCE_URL', default=None,
    help='Service host URL. Defaults to $BULK_INSTANCE_URL.'
)
@click.option(
    '--session-id', envvar='BULK_SESSION_ID', default=None,
    help='Authenticated session id. Defaults to $BULK_SESSION_ID.'
)
@click.option(
    '--api-version', envvar='BULK_API_VERSION', default=None,
    help='Bulk API version. Defaults to $BULK_API_VERSION or 32.0.'
)
@click.option(
    '--registry-file', type=click.Path(dir_okay=False), default=None,
    help='Job journal file. Defaults to a file in the user data directory.'
)
@click.pass_context
def cli(ctx, verbose, quiet, instance_url, session_id, api_version, registry_file):
    """
    Bulk Batch Manager CLI - run asynchronous bulk jobs (insert, update,
    upsert, delete, query) against a record-oriented data service.

    \b
    Every job created is recorded in a local journal before any batch is
    sent, so an interrupted run can be resumed with 'bulkbm resume'.
    """
    setup_logging(verbose=verbose, quiet=quiet)

    ctx.ensure_object(dict)
    ctx.obj.setdefault('instance_url', instance_url)
    ctx.obj.setdefault('session_id', session_id)
    ctx.obj.setdefault('api_version', api_version)
    ctx.obj.setdefault('registry_file', registry_file)


#=============================================================================
# Data Operations
#=============================================================================

def _make_dml_command(operation, name, help_text):

    @click.argument('sobject')
    @click.argument('records_file', type=click.Path(exists=True, dir_okay=False))
    @click.option(
        '--external-field', type=str, default=None,
        help='External id field matched by upsert. Ignored by other operations.'
    )
    @click.option(
        '--nullable-field', 'nullable_fields', multiple=True,
        help='Field allowed to be sent empty. Repeat for several fields.'
    )
    @click.option(
        '--batch-size', type=int, default=MAX_BATCH_SIZE,
        callback=_validate_batch_size_callback,
        help=f'Records per batch (1 .. {MAX_BATCH_SIZE}).'
    )
    @click.option(
        '--close/--no-close', default=True,
        help='Close the job once all batches are sent.'
    )
    @click.option(
        '--pk-chunking', is_flag=True, default=False,
        help='Enable primary key chunking. The job is left open.'
    )
    @click.option(
        '--serial', is_flag=True, default=False,
        help='Process batches serially instead of in parallel.'
    )
    @click.option(
        '--wait/--no-wait', default=True,
        help='Wait for the batches and collect per-record results.'
    )
    @click.option(
        '--timeout', type=float, default=DEFAULT_TIMEOUT,
        callback=_validate_positive_number_callback,
        help='Seconds to wait for the batches.'
    )
    @click.option(
        '--poll-interval', type=float, default=DEFAULT_POLL_INTERVAL,
        help='Seconds between status checks.'
    )
    @click.option(
        '--output', type=click.Path(dir_okay=False), default=None,
        help='Write per-record results to a .jsonl or .csv file.'
    )
    @click.pass_context
    def command(ctx, sobject, records_file, external_field, nullable_fields, batch_size,
                close, pk_chunking, serial, wait, timeout, poll_interval, output):
        try:
            records = read_records(records_file)
        except ValueError as e:
            raise click.BadParameter(str(e), param_hint='RECORDS_FILE')
        logging.info(f"Read {len(records)} records from {mask_path(records_file)}")

        # an Open job has nothing to wait for yet
        left_open = pk_chunking or not close
        wait = wait and not left_open

        manager = _get_manager(ctx)
        registry = _get_registry(ctx)
        manager.on_job_created(registry.record_job)

        try:
            result = manager.do_operation(
                operation, sobject, records,
                external_field=external_field,
                nullable_fields=list(nullable_fields),
                batch_size=batch_size,
                close_job=close,
                pk_chunking=pk_chunking,
                get_response=wait,
                timeout=timeout,
                concurrency_mode='Serial' if serial else 'Parallel',
                poll_interval=poll_interval,
                progress=True,
            )
        except JobTimeout as e:
            logging.error(f"{e} Run 'bulkbm resume {e.job_id} --operation {operation}' to keep waiting.")
            raise SystemExit(1)
        except BulkApiError as e:
            logging.error(f"{name} failed: {e}")
            raise SystemExit(1)

        job_id = result['id']
        if wait:
            registry.mark_finished(job_id)
            _report_results(result['batches'], output)
        elif left_open:
            _log_job_left_open(job_id, operation)
        else:
            logging.info(f"Job {job_id} submitted. Use 'bulkbm status {job_id}' to follow it.")
        click.echo(job_id)

    command.__doc__ = help_text
    return cli.command(name=name)(command)


insert = _make_dml_command('insert', 'insert', """
    Insert records of SOBJECT from RECORDS_FILE (.jsonl, .csv or .parquet).
    """)
update = _make_dml_command('update', 'update', """
    Update records of SOBJECT from RECORDS_FILE. Records need an Id field.
    """)
upsert = _make_dml_command('upsert', 'upsert', """
    Upsert records of SOBJECT from RECORDS_FILE, matched on --external-field.
    """)
delete = _make_dml_command('delete', 'delete', """
    Delete records of SOBJECT listed (by Id) in RECORDS_FILE.
    """)


@cli.command()
@click.argument('sobject')
@click.argument('soql')
@click.option(
    '--pk-chunking', is_flag=True, default=False,
    help='Enable primary key chunking for large objects.'
)
@click.option(
    '--timeout', type=float, default=DEFAULT_TIMEOUT,
    callback=_validate_positive_number_callback,
    help='Seconds to wait for the query.'
)
@click.option(
    '--poll-interval', type=float, default=DEFAULT_POLL_INTERVAL,
    help='Seconds between status checks.'
)
@click.option(
    '--output', type=click.Path(dir_okay=False), default=None,
    help='Write records to a .jsonl or .csv file instead of printing JSON lines.'
)
@click.pass_context
def query(ctx, sobject, soql, pk_chunking, timeout, poll_interval, output):
    """
    Run the SOQL query against SOBJECT and stream its records.
    """
    manager = _get_manager(ctx)
    registry = _get_registry(ctx)
    manager.on_job_created(registry.record_job)

    try:
        result = manager.query(
            sobject, soql,
            pk_chunking=pk_chunking,
            timeout=timeout,
            poll_interval=poll_interval,
            get_response=not pk_chunking,
        )
        if pk_chunking:
            _log_job_left_open(result['id'], 'query')
            click.echo(result['id'])
            return
        stats = _report_results(result['batches'], output, echo_rows=True)
    except JobTimeout as e:
        logging.error(f"{e} Run 'bulkbm resume {e.job_id} --operation query' to keep waiting.")
        raise SystemExit(1)
    except BulkApiError as e:
        logging.error(f"query failed: {e}")
        raise SystemExit(1)

    registry.mark_finished(result['id'])
    for batch in result['batches']:
        if batch.get('state') != 'Completed':
            logging.error(f"Query batch {batch.get('id')} {batch.get('state')}: {batch.get('stateMessage', '')}")
    logging.info(f"Query returned {stats['rows']} records.")


#=============================================================================
# Job Management
#=============================================================================

@cli.command()
@click.argument('job_id')
@click.pass_context
def status(ctx, job_id):
    """
    Show the state of JOB_ID and of each of its batches.
    """
    manager = _get_manager(ctx)
    job = manager.job_from_id(job_id)
    try:
        info = job.check_job_status()
        batches = job.check_batch_status()
    except BulkApiError as e:
        logging.error(f"Cannot check job {job_id}: {e}")
        raise SystemExit(1)

    _print_job_info(info, batches)
    for state, data in summarize_batch_states(batches).items():
        click.echo(f"{state}: {data['count']} ({data['percentage']:.2f}%)")


@cli.command()
@click.argument('job_id')
@click.pass_context
def close(ctx, job_id):
    """
    Close JOB_ID so the service stops waiting for more batches.
    """
    manager = _get_manager(ctx)
    try:
        info = manager.job_from_id(job_id).close_job()
    except BulkApiError as e:
        logging.error(f"Cannot close job {job_id}: {e}")
        raise SystemExit(1)
    click.echo(f"Job {job_id}: {info.get('state')}")


@cli.command()
@click.argument('job_id')
@click.option(
    '--operation', type=click.Choice(OPERATIONS), default=None,
    help='Operation of the job. Defaults to the one recorded in the journal.'
)
@click.option(
    '--timeout', type=float, default=DEFAULT_TIMEOUT,
    callback=_validate_positive_number_callback,
    help='Seconds to wait for the batches.'
)
@click.option(
    '--poll-interval', type=float, default=DEFAULT_POLL_INTERVAL,
    help='Seconds between status checks.'
)
@click.option(
    '--output', type=click.Path(dir_okay=False), default=None,
    help='Write results to a .jsonl or .csv file.'
)
@click.pass_context
def resume(ctx, job_id, operation, timeout, poll_interval, output):
    """
    Wait for JOB_ID, started earlier, and collect its results.
    """
    registry = _get_registry(ctx)
    if operation is None:
        recorded = registry.get_job(job_id)
        if not recorded or not recorded.get('operation'):
            logging.error(f"Job {job_id} is not in the journal. Please pass --operation.")
            raise SystemExit(1)
        operation = recorded['operation']

    manager = _get_manager(ctx)
    try:
        batches = manager.wait_for_job(
            job_id, operation, get_response=True,
            timeout=timeout, poll_interval=poll_interval,
        )
        if not batches and manager.job_from_id(job_id).check_job_status().get('state') != 'Closed':
            _log_job_left_open(job_id, operation)
            return
        _report_results(batches, output, echo_rows=operation == 'query')
    except BulkApiError as e:
        logging.error(f"Cannot collect job {job_id}: {e}")
        raise SystemExit(1)

    registry.mark_finished(job_id)


#=============================================================================
# Job Journal
#=============================================================================

@cli.command(name='list-jobs')
@click.option(
    '--pending', is_flag=True, default=False,
    help='Only show jobs not yet collected.'
)
@click.pass_context
def list_jobs(ctx, pending):
    """
    List jobs recorded in the journal.
    """
    jobs = _get_registry(ctx).list_jobs(pending_only=pending)
    if not jobs:
        click.echo("No jobs recorded.")
        return
    for job in jobs:
        click.echo(
            f"{job['job_id']:<20} {job.get('operation') or '':<8} "
            f"{job.get('object') or '':<20} {job.get('status'):<9} {job.get('created_at')}"
        )


@cli.command(name='forget-job')
@click.argument('job_id')
@click.pass_context
def forget_job(ctx, job_id):
    """
    Remove JOB_ID from the journal. The remote job is left untouched.
    """
    if not _get_registry(ctx).remove_job(job_id):
        logging.error(f"Job {job_id} is not in the journal.")
        raise SystemExit(1)
