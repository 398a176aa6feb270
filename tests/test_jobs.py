from __future__ import annotations

import csv
import io

import pytest

from bulk_batch_manager.core.bulk.exceptions import (
    BatchCreationError,
    ConfigurationError,
    JobTimeout,
    RemoteServiceError,
)
from bulk_batch_manager.core.bulk.jobs import Job

from fakes import batch_info, batch_info_list, job_info, result_list, service_error


def _csv_rows(body: bytes) -> list[list[str]]:
    return list(csv.reader(io.StringIO(body.decode('utf-8'))))


def _open_job(connection, operation: str = 'update', **kwargs) -> Job:
    connection.add('POST', 'job', job_info('JOB1'))
    job = Job(connection, operation=operation, sobject='Account', **kwargs)
    job.create_job()
    return job


#=============================================================================
# Creation
#=============================================================================

def test_create_job_posts_job_info(connection) -> None:
    job = _open_job(connection, 'upsert', external_field='External__c')

    assert job.job_id == 'JOB1'
    method, path, body, headers = connection.requests[0]
    assert (method, path) == ('POST', 'job')
    assert headers['Content-Type'].startswith('application/xml')
    assert b'<externalIdFieldName>External__c</externalIdFieldName>' in body
    assert 'Sforce-Enable-PKChunking' not in headers


@pytest.mark.parametrize("pk_chunking,header", [(True, 'true'), (50000, 'chunkSize=50000')])
def test_create_job_with_pk_chunking(connection, pk_chunking, header) -> None:
    connection.add('POST', 'job', job_info('JOB1'))
    Job(connection, operation='query', sobject='Account').create_job(pk_chunking=pk_chunking)
    assert connection.requests[0][3]['Sforce-Enable-PKChunking'] == header


def test_create_job_service_exception(connection) -> None:
    connection.add('POST', 'job', service_error('InvalidEntity', 'Unknown object Acount'))
    job = Job(connection, operation='insert', sobject='Acount')

    with pytest.raises(RemoteServiceError) as error:
        job.create_job()
    assert error.value.code == 'InvalidEntity'
    assert job.job_id is None


def test_create_job_without_id(connection) -> None:
    connection.add('POST', 'job', b'<jobInfo><state>Open</state></jobInfo>')
    with pytest.raises(RemoteServiceError):
        Job(connection, operation='insert', sobject='Account').create_job()


def test_bad_concurrency_mode_is_rejected_before_any_request(connection) -> None:
    job = Job(connection, operation='insert', sobject='Account')
    with pytest.raises(ConfigurationError):
        job.create_job(concurrency_mode='Sequential')
    assert connection.requests == []


def test_unknown_operation_is_rejected() -> None:
    with pytest.raises(ConfigurationError):
        Job(None, operation='merge', sobject='Account')


def test_external_field_only_kept_for_upsert() -> None:
    assert Job(None, operation='update', sobject='Account', external_field='Id').external_field is None
    assert Job(None, operation='upsert', sobject='Account', external_field='Id').external_field == 'Id'


def test_close_job(connection) -> None:
    job = _open_job(connection)
    connection.add('POST', 'job/JOB1', job_info('JOB1', 'Closed', numberBatchesTotal='2'))

    info = job.close_job()

    assert info['state'] == 'Closed'
    assert info['numberBatchesTotal'] == '2'
    assert b'<state>Closed</state>' in connection.posts('job/JOB1')[0][2]


#=============================================================================
# Batches
#=============================================================================

def test_add_batches_sends_chunks_in_order_with_shared_header(connection) -> None:
    job = _open_job(connection, nullable_fields=['Phone'])
    connection.add('POST', 'job/JOB1/batch/', batch_info('B1'), batch_info('B2'), batch_info('B3'))
    records = [
        {'Id': '1', 'Name': 'a'},
        {'Id': '2', 'Name': 'b', 'Phone': '555'},
        {'Id': '3', 'Name': 'c'},
        {'Id': '4', 'Name': 'd'},
        {'Id': '5', 'Name': 'e'},
    ]

    assert job.add_batches(records, batch_size=2) == ['B1', 'B2', 'B3']

    bodies = [_csv_rows(r[2]) for r in connection.posts('job/JOB1/batch/')]
    assert [rows[0] for rows in bodies] == [['Id', 'Name', 'Phone']] * 3
    assert bodies[0][1:] == [['1', 'a', ''], ['2', 'b', '555']]
    assert bodies[1][1:] == [['3', 'c', ''], ['4', 'd', '']]
    assert bodies[2][1:] == [['5', 'e', '']]
    assert connection.posts('job/JOB1/batch/')[0][3]['Content-Type'].startswith('text/csv')


def test_failed_batch_creation_stops_submission(connection) -> None:
    job = _open_job(connection)
    connection.add(
        'POST', 'job/JOB1/batch/',
        batch_info('B1'),
        service_error('InvalidBatch', 'Field name not found'),
        batch_info('B3'),
    )
    records = [{'Id': str(i)} for i in range(3)]

    with pytest.raises(BatchCreationError) as error:
        job.add_batches(records, batch_size=1)

    assert error.value.job_id == 'JOB1'
    assert error.value.batch_size == 1
    assert error.value.code == 'InvalidBatch'
    assert error.value.service_message == 'Field name not found'
    assert isinstance(error.value, RemoteServiceError)
    assert job.batch_ids == ['B1']
    assert len(connection.posts('job/JOB1/batch/')) == 2


def test_add_query(connection) -> None:
    job = _open_job(connection, 'query')
    connection.add('POST', 'job/JOB1/batch/', batch_info('Q1'))

    assert job.add_query('SELECT Id FROM Account') == 'Q1'
    assert connection.posts('job/JOB1/batch/')[0][2] == b'SELECT Id FROM Account'
    assert job.batch_ids == ['Q1']


def test_query_batch_service_exception_keeps_code(connection) -> None:
    job = _open_job(connection, 'query')
    connection.add('POST', 'job/JOB1/batch/', service_error('InvalidBatch', 'Malformed query'))

    with pytest.raises(BatchCreationError) as error:
        job.add_query('SELEKT Id FROM Account')
    assert error.value.code == 'InvalidBatch'
    assert 'Malformed query' in str(error.value)
    assert job.batch_ids == []


def test_load_batches_for_recovered_job(connection) -> None:
    connection.add('GET', 'job/JOB9/batch', batch_info_list(('B1', 'Completed'), ('B2', 'Queued')))
    job = Job(connection, operation='update', job_id='JOB9')

    assert job.load_batches() == ['B1', 'B2']
    assert job.load_batches() == ['B1', 'B2']


#=============================================================================
# Waiting and Results
#=============================================================================

def test_results_are_collected_in_submission_order(connection) -> None:
    job = Job(connection, operation='update', job_id='JOB1')
    job.batch_ids = ['B1', 'B2']
    connection.add('GET', 'job/JOB1', job_info('JOB1', 'Closed'))
    connection.add('GET', 'job/JOB1/batch/B1', batch_info('B1', 'InProgress'), batch_info('B1', 'Completed'))
    connection.add('GET', 'job/JOB1/batch/B2', batch_info('B2', 'Completed'))
    connection.add('GET', 'job/JOB1/batch/B1/result', b'"Id","Success","Created","Error"\n"001a","true","false",""\n')
    connection.add('GET', 'job/JOB1/batch/B2/result', b'"Id","Success","Created","Error"\n"001b","true","false",""\n')

    batches = job.get_job_result(True, timeout=30, poll_interval=0)

    assert [b['id'] for b in batches] == ['B1', 'B2']
    assert batches[0]['response'] == [{'id': '001a', 'success': 'true', 'created': 'false', 'error': ''}]
    assert batches[1]['response'][0]['id'] == '001b'
    assert job.batch_ids == ['B1', 'B2']


def test_statuses_without_results(connection) -> None:
    job = Job(connection, operation='update', job_id='JOB1')
    job.batch_ids = ['B1']
    connection.add('GET', 'job/JOB1', job_info('JOB1', 'Closed'))
    connection.add('GET', 'job/JOB1/batch/B1', batch_info('B1', 'Completed'))

    batches = job.get_job_result(False, timeout=30, poll_interval=0)

    assert batches == [{'id': 'B1', 'jobId': 'JOB1', 'state': 'Completed'}]


def test_failed_batch_has_no_response(connection) -> None:
    job = Job(connection, operation='insert', job_id='JOB1')
    job.batch_ids = ['B1']
    connection.add('GET', 'job/JOB1', job_info('JOB1', 'Closed'))
    connection.add('GET', 'job/JOB1/batch/B1', batch_info('B1', 'Failed', stateMessage='InvalidBatch'))

    batches = job.get_job_result(True, timeout=30, poll_interval=0)

    assert batches[0]['state'] == 'Failed'
    assert 'response' not in batches[0]
    assert not any(r[1].endswith('/result') for r in connection.requests)


def test_error_document_on_result_fetch_is_raised(connection) -> None:
    job = Job(connection, operation='update', job_id='JOB1')
    connection.add('GET', 'job/JOB1/batch/B1/result', service_error('InvalidBatch', 'Records not processed'))

    with pytest.raises(RemoteServiceError) as error:
        job.get_batch_result('B1')
    assert error.value.code == 'InvalidBatch'
    assert error.value.message == 'Records not processed'


def test_empty_result_body_gives_no_rows(connection) -> None:
    job = Job(connection, operation='update', job_id='JOB1')
    connection.add('GET', 'job/JOB1/batch/B1/result', b'')

    assert job.get_batch_result('B1') == []


def test_timeout_raises_with_outstanding_batches(connection) -> None:
    job = Job(connection, operation='update', job_id='JOB1')
    job.batch_ids = ['B1', 'B2']
    connection.add('GET', 'job/JOB1', job_info('JOB1', 'Closed'))
    connection.add('GET', 'job/JOB1/batch/B1', batch_info('B1', 'InProgress'))
    connection.add('GET', 'job/JOB1/batch/B2', batch_info('B2', 'Queued'))

    with pytest.raises(JobTimeout) as error:
        job.get_job_result(True, timeout=0, poll_interval=0)

    assert error.value.job_id == 'JOB1'
    assert error.value.batch_ids == ['B1', 'B2']
    assert isinstance(error.value, TimeoutError)


def test_job_not_closed_stops_polling(connection) -> None:
    job = Job(connection, operation='update', job_id='JOB1')
    job.batch_ids = ['B1']
    connection.add('GET', 'job/JOB1', job_info('JOB1', 'Open'))

    assert job.get_job_result(True, timeout=30, poll_interval=0) == []
    assert [r[1] for r in connection.requests] == ['job/JOB1']


def test_query_results_are_streamed_lazily(connection) -> None:
    job = Job(connection, operation='query', job_id='JOB1')
    job.batch_ids = ['Q1']
    connection.add('GET', 'job/JOB1', job_info('JOB1', 'Closed'))
    connection.add('GET', 'job/JOB1/batch/Q1', batch_info('Q1', 'Completed'))
    connection.add('GET', 'job/JOB1/batch/Q1/result', result_list('R1', 'R2'))
    connection.add_stream('job/JOB1/batch/Q1/result/R1', b'"Id","Name"\n"001a",', b'"Acme"\n')
    connection.add_stream('job/JOB1/batch/Q1/result/R2', b'"Id","Name"\n"001b","Globex"\n')

    batches = job.get_job_result(True, timeout=30, poll_interval=0)
    assert connection.opened_streams == []

    assert list(batches[0]['response']) == [
        {'Id': '001a', 'Name': 'Acme'},
        {'Id': '001b', 'Name': 'Globex'},
    ]
    assert connection.closed_streams == [
        'job/JOB1/batch/Q1/result/R1',
        'job/JOB1/batch/Q1/result/R2',
    ]


def test_query_without_result_sets(connection) -> None:
    job = Job(connection, operation='query', job_id='JOB1')
    connection.add('GET', 'job/JOB1/batch/Q1/result', result_list())

    assert list(job.results('Q1')) == []
    assert connection.opened_streams == []


def test_closing_query_iterator_early_releases_stream(connection) -> None:
    job = Job(connection, operation='query', job_id='JOB1')
    connection.add('GET', 'job/JOB1/batch/Q1/result', result_list('R1', 'R2'))
    connection.add_stream('job/JOB1/batch/Q1/result/R1', b'Id\n1\n2\n')
    connection.add_stream('job/JOB1/batch/Q1/result/R2', b'Id\n3\n')

    rows = job.results('Q1')
    assert next(rows) == {'Id': '1'}
    rows.close()

    assert connection.opened_streams == ['job/JOB1/batch/Q1/result/R1']
    assert connection.closed_streams == ['job/JOB1/batch/Q1/result/R1']
