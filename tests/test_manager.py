from __future__ import annotations

import pytest

from bulk_batch_manager.core.bulk.exceptions import ConfigurationError, RecordValidationError
from bulk_batch_manager.core.bulk.manager import BulkBatchManager, OperationCounters

from fakes import batch_info, batch_info_list, job_info, result_list

RESULT_HEADER = b'"Id","Success","Created","Error"\n'


def _script_dml_job(connection, batches: dict[str, bytes]) -> None:
    """Route a job JOB1 whose batches complete at once with the given result bodies."""
    connection.add('POST', 'job', job_info('JOB1'))
    connection.add('POST', 'job/JOB1/batch/', *[batch_info(b) for b in batches])
    connection.add('POST', 'job/JOB1', job_info('JOB1', 'Closed', numberBatchesTotal=str(len(batches))))
    connection.add('GET', 'job/JOB1', job_info('JOB1', 'Closed'))
    for batch_id, body in batches.items():
        connection.add('GET', f'job/JOB1/batch/{batch_id}', batch_info(batch_id, 'Completed'))
        connection.add('GET', f'job/JOB1/batch/{batch_id}/result', RESULT_HEADER + body)


def test_upsert_returns_per_record_results(connection) -> None:
    _script_dml_job(connection, {'B1': b'"001x","true","false",""\n'})
    manager = BulkBatchManager(connection)

    result = manager.upsert(
        'Account', [{'Id': '001x', 'Website': 'abc.com'}],
        external_field='Id', get_response=True, poll_interval=0,
    )

    assert result['id'] == 'JOB1'
    assert result['state'] == 'Closed'
    [batch] = result['batches']
    assert batch['state'] == 'Completed'
    assert batch['response'] == [{'id': '001x', 'success': 'true', 'created': 'false', 'error': ''}]
    assert b'<externalIdFieldName>Id</externalIdFieldName>' in connection.posts('job')[0][2]


def test_malformed_id_row_is_reported_in_results(connection) -> None:
    _script_dml_job(connection, {
        'B1': (b'"001a","true","false",""\n'
               b'"001b","true","false",""\n'
               b'"","false","false","MALFORMED_ID:bad id 123:Id --"\n'
               b'"001d","true","false",""\n'),
    })
    records = [
        {'Id': '001a', 'Website': 'a.com'},
        {'Id': '001b', 'Website': 'b.com'},
        {'Id': '123', 'Website': 'c.com'},
        {'Id': '001d', 'Website': 'd.com'},
    ]

    result = BulkBatchManager(connection).update('Account', records, get_response=True, poll_interval=0)

    rows = result['batches'][0]['response']
    assert len(rows) == 4
    assert rows[2]['id'] == ''
    assert rows[2]['success'] == 'false'
    assert rows[2]['created'] == 'false'
    assert rows[2]['error'].startswith('MALFORMED_ID')
    assert [r['success'] for r in rows] == ['true', 'true', 'false', 'true']


def test_update_without_response_counts_requests(connection) -> None:
    _script_dml_job(connection, {'B1': b''})
    manager = BulkBatchManager(connection)

    result = manager.update('Account', [{'Id': '001x', 'Name': 'n'}])

    assert 'batches' not in result
    assert result['id'] == 'JOB1'
    counters = manager.counters
    assert counters['http_post'] == 3
    assert counters['http_get'] == 0
    assert counters['update'] == 1
    assert counters['upsert'] == 0


def test_insert_is_counted_as_create(connection) -> None:
    _script_dml_job(connection, {'B1': b''})
    manager = BulkBatchManager(connection)

    manager.insert('Account', [{'Name': 'n'}])

    assert manager.counters['create'] == 1
    assert b'<operation>insert</operation>' in connection.posts('job')[0][2]


def test_listener_sees_job_before_first_batch(connection) -> None:
    _script_dml_job(connection, {'B1': b'', 'B2': b''})
    manager = BulkBatchManager(connection)
    seen = []

    @manager.on_job_created
    def remember(job):
        seen.append((job.job_id, len(connection.posts('job/JOB1/batch/'))))

    manager.update('Account', [{'Id': '1'}, {'Id': '2'}], batch_size=1)

    assert seen == [('JOB1', 0)]


def test_pk_chunking_leaves_job_open(connection) -> None:
    connection.add('POST', 'job', job_info('JOB1'))
    connection.add('POST', 'job/JOB1/batch/', batch_info('Q1'))
    manager = BulkBatchManager(connection)

    result = manager.query('Account', 'SELECT Id FROM Account', pk_chunking=True, get_response=False)

    assert result == {'id': 'JOB1'}
    assert connection.posts('job/JOB1') == []
    assert connection.posts('job')[0][3]['Sforce-Enable-PKChunking'] == 'true'


def test_query_streams_results_by_default(connection) -> None:
    connection.add('POST', 'job', job_info('JOB1'))
    connection.add('POST', 'job/JOB1/batch/', batch_info('Q1'))
    connection.add('POST', 'job/JOB1', job_info('JOB1', 'Closed'))
    connection.add('GET', 'job/JOB1', job_info('JOB1', 'Closed'))
    connection.add('GET', 'job/JOB1/batch/Q1', batch_info('Q1', 'InProgress'), batch_info('Q1', 'Completed'))
    connection.add('GET', 'job/JOB1/batch/Q1/result', result_list('R1'))
    connection.add_stream('job/JOB1/batch/Q1/result/R1', b'"Id"\n"001a"\n"001b"\n')
    manager = BulkBatchManager(connection)

    result = manager.query('Account', 'SELECT Id FROM Account', poll_interval=0)

    assert [row['Id'] for row in result['batches'][0]['response']] == ['001a', '001b']
    assert manager.counters['query'] == 1


@pytest.mark.parametrize("records,options", [
    ({'Id': '1'}, {}),
    ([{'Id': '1'}], {'batch_size': 0}),
    ([{'Id': '1'}], {'batch_size': 10_001}),
    ([{'Id': '1'}], {'concurrency_mode': 'Fast'}),
])
def test_bad_configuration_fails_before_any_request(connection, records, options) -> None:
    with pytest.raises(ConfigurationError):
        BulkBatchManager(connection).update('Account', records, **options)
    assert connection.requests == []


def test_missing_field_stops_before_batches_are_sent(connection) -> None:
    connection.add('POST', 'job', job_info('JOB1'))
    with pytest.raises(RecordValidationError):
        BulkBatchManager(connection).update('Account', [{'Id': '1', 'Name': 'a'}, {'Id': '2'}])
    assert connection.posts('job/JOB1/batch/') == []


def test_wait_for_job_recovers_batches(connection) -> None:
    connection.add('GET', 'job/JOB7/batch', batch_info_list(('B1', 'Completed'), ('B2', 'Failed')))
    connection.add('GET', 'job/JOB7', job_info('JOB7', 'Closed'))
    connection.add('GET', 'job/JOB7/batch/B1', batch_info('B1', 'Completed', job_id='JOB7'))
    connection.add('GET', 'job/JOB7/batch/B2', batch_info('B2', 'Failed', job_id='JOB7'))
    connection.add('GET', 'job/JOB7/batch/B1/result', RESULT_HEADER + b'"001a","true","true",""\n')

    batches = BulkBatchManager(connection).wait_for_job('JOB7', 'insert', poll_interval=0)

    assert [b['id'] for b in batches] == ['B1', 'B2']
    assert batches[0]['response'][0]['created'] == 'true'
    assert 'response' not in batches[1]


def test_operation_counters_are_independent() -> None:
    counters = OperationCounters()
    counters.increment('update')
    counters.increment('update')
    snapshot = counters.snapshot()
    counters.increment('delete')

    assert snapshot == {'upsert': 0, 'update': 2, 'create': 0, 'delete': 0, 'query': 0}
    assert counters.snapshot()['delete'] == 1
