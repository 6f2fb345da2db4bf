"""
-------------------
ndstore.cli.records
-------------------

Record commands of the ndstore command line interface: ``add``, ``list``, ``find``,
``update``, ``delete``, ``clear``, ``count`` and ``size``.

The records are printed one per line, in the same format as they are stored.
"""
import asyncio
import sys
from logging import getLogger

from ndstore.config import create_store
from ndstore.criteria import parse_assignment, where
from ndstore.model import RecordParser


log = getLogger(__name__)


COMMANDS = ('add', 'list', 'find', 'update', 'delete', 'clear', 'count', 'size')


def _add_where(parser, required=False):
    parser.add_argument('-w', '--where', dest='where', action='append', default=[],
                        type=parse_assignment, metavar='KEY=VALUE', required=required,
                        help='Match records whose field KEY equals VALUE. ' +
                        'KEY may be a dotted path. Can be given multiple times.')


def get_parser(subparsers):
    """Configures the subparsers for the record commands.

    :param argparse.ArgumentParser subparser: subparser for commands.

    Returns ``dict`` of the configured :class:`argparse.ArgumentParser`, by command name.
    """
    parsers = {}

    parser = parsers['add'] = subparsers.add_parser('add', help='Add records')
    parser.add_argument('records', nargs='+', metavar='RECORD',
                        help='JSON records to add. Use "-" to read NDJSON from stdin.')

    parsers['list'] = subparsers.add_parser('list', help='Print all records')

    parser = parsers['find'] = subparsers.add_parser('find', help='Print matching records')
    _add_where(parser)
    parser.add_argument('--first', dest='first', action='store_true',
                        help='Print only the first matching record.')
    parser.add_argument('--no-wait', dest='wait', action='store_false',
                        help='Do not wait for pending operations.')

    parser = parsers['update'] = subparsers.add_parser('update', help='Replace matching records')
    _add_where(parser, required=True)
    parser.add_argument('record', metavar='RECORD', help='The replacement JSON record.')

    parser = parsers['delete'] = subparsers.add_parser('delete', help='Delete matching records')
    _add_where(parser, required=True)

    parsers['clear'] = subparsers.add_parser('clear', help='Delete all records')
    parsers['count'] = subparsers.add_parser('count', help='Print the number of records')
    parsers['size'] = subparsers.add_parser('size', help='Print the size of the store file in bytes')

    return parsers


def read_records(values, stdin=None):
    """Decodes the records given on the command line.

    :param list values: JSON documents, or ``"-"`` to read NDJSON from ``stdin``.
    :param stdin: the stream to read from for ``"-"``. Defaults to ``sys.stdin``.

    Returns ``list`` of records.
    """
    parser = RecordParser()
    records = []
    for value in values:
        if value == '-':
            for line_number, line in enumerate(stdin or sys.stdin, start=1):
                if line.strip():
                    records.append(parser.parse(line, line_number=line_number))
        else:
            records.append(parser.parse(value))
    return records


def _criteria(args):
    return where(dict(args.where))


async def _add(store, args):
    records = read_records(args.records)
    await store.append(records)
    log.info('Added %d records', len(records))


async def _list(store, args):
    await store.for_each(_print_record(store))


async def _find(store, args):
    if args.first:
        record = await store.find_one(_criteria(args), args.wait)
        if record is None:
            return 1
        _print_record(store)(record)
    else:
        for record in await store.find_all(_criteria(args), args.wait):
            _print_record(store)(record)


async def _update(store, args):
    record = RecordParser().parse(args.record)
    print(await store.update_records(_criteria(args), record))


async def _delete(store, args):
    print(await store.delete_records(_criteria(args)))


async def _clear(store, args):
    await store.delete_all_records()


async def _count(store, args):
    print(await store.count())


async def _size(store, args):
    print(await store.size_on_disk())


def _print_record(store):
    def printer(record):
        print(store.serializer.serialize(record))
    return printer


_RUNNERS = {
    'add': _add,
    'list': _list,
    'find': _find,
    'update': _update,
    'delete': _delete,
    'clear': _clear,
    'count': _count,
    'size': _size,
}


def run_records(args, config):
    """Runs one of the record commands against the configured store.

    :param argparse.Namespace args: the parsed arguments passed to the CLI.
    :param ndstore.config.StoreConfig config: the store configuration.

    Returns the exit code (``int``).
    """
    store = create_store(config)

    async def run():
        try:
            return await _RUNNERS[args.command](store, args)
        finally:
            await store.close()

    return asyncio.run(run()) or 0
