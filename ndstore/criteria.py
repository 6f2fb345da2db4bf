"""
----------------
ndstore.criteria
----------------

Field criteria for matching records.

Criteria are given as a ``dict`` that maps field paths to expected values. A path
is a dot-separated sequence of keys into nested mappings, for example
``address.city``. A record matches the criteria when *all* paths exist in the record
and hold values equal to the expected ones.

The criteria are used by the command line interface (``--where``) and by the
WebSocket server (``where``).
"""
import json


_MISSING = object()


def lookup(record, path):
    """Looks up the value at the given dot-separated path.

    Returns the value, or a private sentinel if the path does not exist.
    """
    value = record
    for key in path.split('.'):
        if isinstance(value, dict):
            if key not in value:
                return _MISSING
            value = value[key]
        elif isinstance(value, list) and key.isdigit():
            idx = int(key)
            if idx >= len(value):
                return _MISSING
            value = value[idx]
        else:
            return _MISSING
    return value


def match_fields(record, criteria):
    """Check if the record matches *all* of the criteria.

    :param record: the record to check.
    :param criteria: ``dict``, maps field paths to expected values.

    Returns ``True`` if every path exists in the record and holds the expected value.
    """
    for path, expected in criteria.items():
        value = lookup(record, path)
        if value is _MISSING or value != expected:
            return False
    return True


def where(criteria):
    """Builds a predicate function out of the criteria.

    Empty criteria match every record.
    """
    criteria = dict(criteria or {})

    def predicate(record):
        return match_fields(record, criteria)

    return predicate


def parse_assignment(text):
    """Parses a ``key=value`` pair from the command line.

    The value is decoded as JSON when possible (so ``id=3`` matches the number ``3``,
    and ``id='"3"'`` the string ``"3"``), otherwise it is taken verbatim.

    Returns a ``(key, value)`` tuple.
    """
    key, sep, raw = text.partition('=')
    if not sep or not key:
        raise ValueError('expected key=value, got %r' % text)
    try:
        value = json.loads(raw)
    except ValueError:
        value = raw
    return key.strip(), value
