import pytest

from tests.schema import context_for, schema


def _selects_from(statements, table):
    return [s for s in statements if f" from {table}" in s or f' from "{table}"' in s]


@pytest.mark.asyncio
async def test_nested_query_batches_each_table_once(db_session, populated_db, select_statements):
    query = """
    query {
      reservations(ids: [100, 101, 102, 103, 104]) {
        id
        state
        vehicle { vin location { timezone } }
        borrowerCompany { name }
        lenderCompany { country }
      }
    }
    """
    res = await schema.execute(query, context_value=context_for(db_session))
    assert res.errors is None, res.errors
    rows = res.data['reservations']
    assert [r['id'] for r in rows] == [100, 101, 102, 103, 104]
    assert rows[0]['vehicle'] == {'vin': '1HGCM82633A000010', 'location': {'timezone': 'America/Chicago'}}
    assert rows[3]['vehicle']['location'] == {'timezone': 'Europe/Berlin'}
    assert rows[4]['vehicle'] is None
    assert rows[0]['borrowerCompany'] == {'name': 'Borrow Co'}
    assert rows[3]['lenderCompany'] == {'country': 'DE'}

    for table in ('reservations', 'vehicles', 'locations', 'companies'):
        assert len(_selects_from(select_statements, table)) == 1, (table, select_statements)

    vehicles_sql = _selects_from(select_statements, 'vehicles')[0]
    assert 'vin' in vehicles_sql and 'location_id' in vehicles_sql
    for col in ('make', 'model', 'customer_vehicle_number'):
        assert col not in vehicles_sql, vehicles_sql

    # borrower asks for name, lender for country: one fetch with both
    companies_sql = _selects_from(select_statements, 'companies')[0]
    assert 'name' in companies_sql and 'country' in companies_sql

    reservations_sql = _selects_from(select_statements, 'reservations')[0]
    for col in ('state', 'vehicle_id', 'borrower_company_id', 'lender_company_id'):
        assert col in reservations_sql
    for col in ('hash', 'start_date', 'end_date', 'duration'):
        assert col not in reservations_sql, reservations_sql


@pytest.mark.asyncio
async def test_sibling_fields_union_into_one_fetch(db_session, populated_db, select_statements):
    query = """
    query {
      a: reservation(id: 100) { vehicle { vin } }
      b: reservation(id: 101) { vehicle { customerVehicleNumber } }
    }
    """
    res = await schema.execute(query, context_value=context_for(db_session))
    assert res.errors is None, res.errors
    assert res.data['a']['vehicle'] == {'vin': '1HGCM82633A000010'}
    assert res.data['b']['vehicle'] == {'customerVehicleNumber': 'CV-11'}

    assert len(_selects_from(select_statements, 'reservations')) == 1
    vehicles = _selects_from(select_statements, 'vehicles')
    assert len(vehicles) == 1, select_statements
    assert 'vin' in vehicles[0] and 'customer_vehicle_number' in vehicles[0]


@pytest.mark.asyncio
async def test_fragments_and_typename(db_session, populated_db, select_statements):
    query = """
    query {
      reservation(id: 103) { __typename ...Parts ... on ReservationType { hash } }
    }
    fragment Parts on ReservationType { state lenderCompany { name } }
    """
    res = await schema.execute(query, context_value=context_for(db_session))
    assert res.errors is None, res.errors
    assert res.data['reservation'] == {
        '__typename': 'ReservationType',
        'state': 'cancelled',
        'hash': 'd4',
        'lenderCompany': {'name': 'Fleet GmbH'},
    }
    sql = _selects_from(select_statements, 'reservations')[0]
    for col in ('state', 'hash', 'lender_company_id'):
        assert col in sql
    assert 'vehicle_id' not in sql


@pytest.mark.asyncio
async def test_missing_entity_is_null(db_session, populated_db):
    res = await schema.execute("query { reservation(id: 999) { state } }", context_value=context_for(db_session))
    assert res.errors is None, res.errors
    assert res.data == {'reservation': None}


@pytest.mark.asyncio
async def test_loaders_do_not_leak_between_requests(db_session, populated_db, select_statements):
    query = "query { reservation(id: 100) { state } }"
    for _ in range(2):
        res = await schema.execute(query, context_value=context_for(db_session))
        assert res.errors is None, res.errors
    assert len(_selects_from(select_statements, 'reservations')) == 2


@pytest.mark.asyncio
async def test_repeated_key_in_one_request_fetched_once(db_session, populated_db, select_statements):
    query = """
    query {
      first: reservation(id: 100) { state }
      again: reservation(id: 100) { state }
    }
    """
    ctx = context_for(db_session)
    res = await schema.execute(query, context_value=ctx)
    assert res.errors is None, res.errors
    assert res.data['first'] == res.data['again'] == {'state': 'approved'}
    assert len(_selects_from(select_statements, 'reservations')) == 1
    assert ctx['loaders'].stats()['ReservationShape'].cache_hits == 1


@pytest.mark.asyncio
async def test_missing_loaders_in_context(db_session):
    res = await schema.execute("query { reservation(id: 100) { state } }", context_value={'db_session': db_session})
    assert res.errors
    assert 'No request loaders' in res.errors[0].message
