import pytest

from ndstore.criteria import match_fields, where, parse_assignment, lookup


def test_match_fields():
    record = {'id': 1, 'name': 'Ann', 'address': {'city': 'Wien', 'zip': '1010'}, 'tags': ['a', 'b']}

    assert match_fields(record, {'id': 1}) is True
    assert match_fields(record, {'id': 1, 'name': 'Ann'}) is True
    assert match_fields(record, {'address.city': 'Wien'}) is True
    assert match_fields(record, {'tags.1': 'b'}) is True
    assert match_fields(record, {'id': 2}) is False
    assert match_fields(record, {'id': 1, 'name': 'Bob'}) is False
    assert match_fields(record, {'address.street': None}) is False
    assert match_fields(record, {'tags.5': 'b'}) is False
    assert match_fields(record, {}) is True


def test_missing_field_does_not_match_none():
    assert match_fields({'a': None}, {'a': None}) is True
    assert match_fields({}, {'a': None}) is False
    assert match_fields('scalar', {'a': 1}) is False


def test_where_builds_predicate():
    predicate = where({'kind': 'x'})

    assert predicate({'kind': 'x', 'id': 1})
    assert not predicate({'kind': 'y'})
    assert where(None)({'anything': True})


def test_lookup_nested():
    assert lookup({'a': {'b': {'c': 3}}}, 'a.b.c') == 3


def test_parse_assignment():
    assert parse_assignment('id=3') == ('id', 3)
    assert parse_assignment('id="3"') == ('id', '3')
    assert parse_assignment('name=Ann') == ('name', 'Ann')
    assert parse_assignment('flag=true') == ('flag', True)
    assert parse_assignment('a.b=x=y') == ('a.b', 'x=y')
    assert parse_assignment('empty=') == ('empty', '')

    with pytest.raises(ValueError):
        parse_assignment('noequals')
    with pytest.raises(ValueError):
        parse_assignment('=value')
