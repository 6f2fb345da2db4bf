"""
-------------
ndstore.model
-------------

Record codec.

A record is any value the codec can turn into a single line of text and back.
The default codec is JSON: records are written as compact JSON documents, one
per line (NDJSON).
"""
import json

from ndstore.storeapi import RecordParseException, RecordWriteException


class RecordSerializer:
    """Serializes records into single lines of JSON.

    :param encoding: ``str``, the encoding used when the serialized record is
        written to a file. Default is ``utf-8``.
    """

    def __init__(self, encoding='utf-8'):
        self.encoding = encoding

    def serialize(self, record):
        """Serializes the record into one line of text.

        The returned string does not contain the line terminator. JSON escapes line
        breaks inside strings, so the result is always a single line.

        :param record: the record to serialize. Must be JSON serializable.

        Returns the serialized record as ``str``.
        """
        try:
            return json.dumps(record, ensure_ascii=False, separators=(',', ':'))
        except (TypeError, ValueError) as e:
            raise RecordWriteException('Record cannot be serialized: %s' % e) from e


class RecordParser:
    """Parses single lines of JSON into records.

    :param encoding: ``str``, the encoding of the raw lines. Default is ``utf-8``.
    """

    def __init__(self, encoding='utf-8'):
        self.encoding = encoding

    def parse(self, line, line_number=None):
        """Parses one line into a record.

        :param line: ``str`` or ``bytes``, the line to parse, with or without the line
            terminator.
        :param line_number: ``int``, optional, the line number used in error reports.

        Returns the parsed record. Raises :class:`ndstore.storeapi.RecordParseException`
        if the line is not a valid record.
        """
        if isinstance(line, bytes):
            try:
                line = line.decode(self.encoding)
            except UnicodeDecodeError as e:
                raise RecordParseException('Invalid %s data: %s' % (self.encoding, e),
                                           line_number=line_number) from e
        try:
            return json.loads(line)
        except ValueError as e:
            where = ' at line %d' % line_number if line_number else ''
            raise RecordParseException('Invalid record%s: %s' % (where, e),
                                       line_number=line_number, line=line) from e
