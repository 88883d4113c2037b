"""Tests for table materialization and paginated ingestion."""

import json

import pandas as pd
import pytest

from remote_models.entity import Entity
from remote_models.exceptions import EmptySchema, RemoteUnavailable
from remote_models.ingest import coerce_record, coerce_value
from remote_models.schema import ColumnType, build_descriptor
from remote_models.store import MEMORY, LocalStore

from .helpers import envelope
from .models import Celebrity, CelebritySheet, CelebrityWithSchema


@pytest.fixture
def celebrity(config):
    return Entity.from_type(Celebrity, config)


@pytest.fixture
def store(celebrity):
    store = LocalStore(MEMORY, celebrity.table)
    yield store
    store.close()


def test_loads_every_page_in_order(pipeline, session, celebrity, store):
    # Schema sample, then the data pages
    session.push(envelope([{'id': 888, 'name': 'The Rock'}], current_page=1, last_page=2, per_page=1, total=2))
    session.push(envelope([{'id': 888, 'name': 'The Rock'}], current_page=1, last_page=2, per_page=1, total=2))
    session.push(envelope([{'id': 999, 'name': 'Dwayne Johnson'}], current_page=2, last_page=2, per_page=1, total=2))

    pipeline.build(celebrity, store)

    assert session.pages_requested == [1, 1, 2]
    assert store.count() == 2
    assert store.first(name='Dwayne Johnson')['id'] == 999
    assert store.first(name='The Rock')['id'] == 888


def test_row_count_is_sum_of_pages(pipeline, session, celebrity, store):
    pages = [
        [{'id': i, 'name': f'Person {i}'} for i in range(1, 21)],
        [{'id': i, 'name': f'Person {i}'} for i in range(21, 24)],
        [{'id': 24, 'name': 'Person 24'}],
    ]
    session.push(envelope(pages[0], current_page=1, last_page=3, per_page=7))
    for number, records in enumerate(pages, start=1):
        session.push(envelope(records, current_page=number, last_page=3, per_page=7))

    pipeline.build(celebrity, store)

    assert store.count() == sum(len(records) for records in pages)
    assert [row['id'] for row in store.all()] == list(range(1, 25))


def test_bare_array_is_loaded_without_continuation(pipeline, session, celebrity, store):
    people = [{'id': i, 'name': f'Person {i}'} for i in range(1, 33)]
    session.push(people)
    session.push(people)

    pipeline.build(celebrity, store)

    assert session.pages_requested == [1, 1]
    assert store.count() == 32


def test_duplicate_remote_records_are_kept(pipeline, session, celebrity, store):
    session.push([{'id': 1, 'name': 'The Rock'}])
    session.push([{'id': 1, 'name': 'The Rock'}, {'id': 1, 'name': 'The Rock'}])

    pipeline.build(celebrity, store)

    assert store.count(id=1) == 2


def test_explicit_schema_filters_unknown_keys(pipeline, session, config):
    entity = Entity.from_type(CelebrityWithSchema, config)
    store = LocalStore(MEMORY, entity.table)
    session.push([{'id': 1, 'name': 'Dwayne Johnson', 'best_movie': 'Jumanji'}])

    pipeline.build(entity, store)

    assert session.pages_requested == [1]
    assert store.columns() == ['id', 'name', 'birthday', 'created_at', 'updated_at']
    row = store.first(id=1)
    assert row['name'] == 'Dwayne Johnson'
    assert 'best_movie' not in row


def test_dates_are_coerced(pipeline, session, config):
    entity = Entity.from_type(CelebrityWithSchema, config)
    store = LocalStore(MEMORY, entity.table)
    session.push([
        {'id': 1, 'name': 'The Rock', 'birthday': {'date': '1972-05-02', 'timezone': None}},
        {'id': 2, 'name': 'Dwayne Johnson', 'birthday': '1972-05-02'},
    ])

    pipeline.build(entity, store)

    expected = pd.Timestamp('1972-05-02')
    birthdays = [row['birthday'] for row in store.all()]
    assert birthdays[0] == birthdays[1]
    assert pd.Timestamp(birthdays[0]) == expected


def test_extra_keys_in_later_records_are_dropped(pipeline, session, celebrity, store):
    session.push([{'id': 1, 'name': 'The Rock'}])
    session.push([{'id': 1, 'name': 'The Rock'}, {'id': 2, 'name': 'DJ', 'nickname': 'Rock'}])

    pipeline.build(celebrity, store)

    assert store.count() == 2
    assert 'nickname' not in store.columns()


def test_empty_sample_creates_no_table(pipeline, session, celebrity, store):
    session.push(envelope([], current_page=1, last_page=1))

    with pytest.raises(EmptySchema):
        pipeline.build(celebrity, store)

    assert store.columns() == []


def test_failed_first_page_leaves_no_rows(pipeline, session, config):
    entity = Entity.from_type(CelebrityWithSchema, config)
    store = LocalStore(MEMORY, entity.table)
    session.push(status_code=500)

    with pytest.raises(RemoteUnavailable):
        pipeline.build(entity, store)

    assert store.count() == 0


def test_failure_mid_pagination_propagates(pipeline, session, celebrity, store):
    session.push(envelope([{'id': 1, 'name': 'A'}], current_page=1, last_page=2))
    session.push(envelope([{'id': 1, 'name': 'A'}], current_page=1, last_page=2))
    session.push(status_code=503)

    with pytest.raises(RemoteUnavailable):
        pipeline.build(celebrity, store)

    assert store.count() == 1


def test_existing_table_skips_load(pipeline, session, celebrity, store):
    store.create_table(build_descriptor({'name': ColumnType.STRING}))
    session.push([{'id': 1, 'name': 'The Rock'}])

    pipeline.build(celebrity, store)

    assert session.pages_requested == [1]
    assert store.count() == 0


def test_stalled_pagination_stops(pipeline, session, celebrity, store):
    session.push(envelope([{'id': 1, 'name': 'A'}], current_page=1, last_page=3))
    session.push(envelope([{'id': 1, 'name': 'A'}], current_page=1, last_page=3))
    session.push(envelope([{'id': 2, 'name': 'B'}], current_page=1, last_page=3))

    pipeline.build(celebrity, store)

    assert session.pages_requested == [1, 1, 2]
    assert store.count() == 2


def test_custom_loader_replaces_page_loop(pipeline, session, config):
    entity = Entity.from_type(CelebritySheet, config)
    store = LocalStore(MEMORY, entity.table)
    session.push({'data': [{'id': 1, 'name': 'The Rock', 'row': 2}], 'current_page': 1, 'last_page': 5})

    pipeline.build(entity, store)

    assert len(session.calls) == 1
    assert session.calls[0]['url'] == 'https://docs.google.com/spreadsheets/d/SHEET_ID/export'
    assert store.all() == [{'id': 1, 'name': 'The Rock', 'created_at': None, 'updated_at': None}]


def test_coerce_value_keeps_plain_values():
    assert coerce_value(888) == 888
    assert coerce_value(1.5) == 1.5
    assert coerce_value('Dwayne Johnson') == 'Dwayne Johnson'
    assert coerce_value(None) is None


def test_coerce_value_honors_embedded_timezone():
    value = coerce_value({'date': '2020-01-01 10:00:00.000000', 'timezone_type': 3, 'timezone': 'UTC'})

    assert pd.Timestamp(value) == pd.Timestamp('2020-01-01 10:00:00', tz='UTC')


def test_coerce_value_serializes_containers():
    assert json.loads(coerce_value({'city': 'Hayward'})) == {'city': 'Hayward'}
    assert json.loads(coerce_value(['Jumanji', 'Moana'])) == ['Jumanji', 'Moana']


def test_coerce_record_filters_to_allowed_keys():
    record = {'id': 1, 'name': 'Dwayne Johnson', 'best_movie': 'Jumanji'}

    assert coerce_record(record, {'id', 'name'}) == {'id': 1, 'name': 'Dwayne Johnson'}
    assert coerce_record(record) == record
