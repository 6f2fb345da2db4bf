import logging
import sys

from ndstore.cli.parser import get_parent_parser, get_config
from ndstore.cli.records import get_parser as get_records_parser, run_records, COMMANDS
from ndstore.cli.follow import get_parser as get_follow_parser, run_follow
from ndstore.cli.serve import get_parser as get_serve_parser, run_server
from ndstore.config import ConfigException
from ndstore.storeapi import RecordStoreException


def get_parser():
    parser = get_parent_parser('ndstore', 'Line-delimited record store')

    subparsers = parser.add_subparsers(dest='command', title='command', help='CLI commands')
    get_records_parser(subparsers)
    get_follow_parser(subparsers)
    get_serve_parser(subparsers)

    return parser


def main(argv=None):
    parser = get_parser()
    args = parser.parse_args(argv)

    if args.version:
        from ndstore.metadata import version
        print('ndstore', version)
        return 0

    try:
        config = get_config(args)
    except ConfigException as e:
        print('ndstore: %s' % e, file=sys.stderr)
        return 2

    logging.basicConfig(level=logging.DEBUG if args.verbose else config.log_level.upper())

    if not args.command:
        parser.print_help()
        return 2
    if not config.path:
        print('ndstore: no store file given (use --file or "path" in the configuration)',
              file=sys.stderr)
        return 2

    try:
        if args.command in COMMANDS:
            return run_records(args, config)
        elif args.command == 'follow':
            return run_follow(args, config)
        elif args.command == 'serve':
            return run_server(args, config)
    except RecordStoreException as e:
        print('ndstore: %s' % e, file=sys.stderr)
        return 1
    return 2


if __name__ == '__main__':
    sys.exit(main())
