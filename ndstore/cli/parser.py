"""
------------------
ndstore.cli.parser
------------------


ndstore CLI main :mod:`argparse` parser.
"""
import argparse

from ndstore.config import StoreConfig, load_config


def get_parent_parser(name, desc=''):
    """Creates the main (parent) :class:`argparse.ArgumentParser` for the ndstore CLI.

    Defines the main argument options such as the configuration file, the store file
    and the verbosity level.

    :param str name: the name of the program.
    :param str desc: program description.

    Returns the configured :class:`argparse.ArgumentParser`.
    """
    parser = argparse.ArgumentParser(prog=name, description=desc)

    parser.add_argument('-v', '--version',
                        help='Print program version and exit', action='store_true')
    parser.add_argument('-c', '--config', dest='config', default=None,
                        help='YAML configuration file')
    parser.add_argument('-f', '--file', dest='store_file', default=None,
                        help='Store file. Overrides the "path" from the configuration.')

    parser.add_argument('--verbose', dest='verbose', action='store_true',
                        help='Verbose output.')

    return parser


def get_config(args):
    """Loads the configuration named by ``--config`` (if any) and applies the
    overrides from the command line.

    :param argparse.Namespace args: the parsed arguments.

    Returns :class:`ndstore.config.StoreConfig`.
    """
    config = load_config(args.config) if args.config else StoreConfig()
    return config.merge(path=args.store_file)
