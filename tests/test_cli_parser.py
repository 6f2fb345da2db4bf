import argparse
import os
import tempfile

import pytest

from ndstore.cli.parser import get_parent_parser, get_config
from ndstore.cli.records import get_parser as get_records_parser
from ndstore.config import ConfigException


def test_get_parent_parser():
    parser = get_parent_parser(name='test', desc='unit test parser')

    args = parser.parse_args(args=['-v'])
    assert args.version is True

    args = parser.parse_args(args=['--version'])
    assert args.version is True
    assert args.config is None
    assert args.store_file is None
    assert args.verbose is False

    args = parser.parse_args(args=['-c', 'ndstore.yml', '-f', 'data.ndjson', '--verbose'])
    assert args.config == 'ndstore.yml'
    assert args.store_file == 'data.ndjson'
    assert args.verbose is True

    args = parser.parse_args(args=['--config', 'other.yml', '--file', 'other.ndjson'])
    assert args.config == 'other.yml'
    assert args.store_file == 'other.ndjson'


def test_get_config_without_file():
    args = argparse.Namespace(config=None, store_file='data.ndjson')

    config = get_config(args)

    assert config.path == 'data.ndjson'
    assert config.port == 6480


def test_get_config_file_is_overridden_by_options():
    with tempfile.TemporaryDirectory() as tmpdir:
        config_path = os.path.join(tmpdir, 'ndstore.yml')
        with open(config_path, 'w') as f:
            f.write('path: from-config.ndjson\nbatch_size: 16\n')

        config = get_config(argparse.Namespace(config=config_path, store_file=None))
        assert config.path == 'from-config.ndjson'
        assert config.batch_size == 16

        config = get_config(argparse.Namespace(config=config_path, store_file='cli.ndjson'))
        assert config.path == 'cli.ndjson'


def test_get_config_missing_file():
    with pytest.raises(ConfigException):
        get_config(argparse.Namespace(config='/does/not/exist.yml', store_file=None))


def test_records_parser():
    parser = argparse.ArgumentParser()
    subparsers = parser.add_subparsers(dest='command')
    parsers = get_records_parser(subparsers)

    assert set(parsers) == {'add', 'list', 'find', 'update', 'delete', 'clear', 'count', 'size'}

    args = parser.parse_args(['find', '-w', 'id=1', '--where', 'user.name=ann', '--first', '--no-wait'])
    assert args.where == [('id', 1), ('user.name', 'ann')]
    assert args.first is True
    assert args.wait is False

    args = parser.parse_args(['find'])
    assert args.where == []
    assert args.wait is True

    args = parser.parse_args(['update', '-w', 'id=1', '{"id": 1}'])
    assert args.record == '{"id": 1}'

    args = parser.parse_args(['add', '{"id": 1}', '-'])
    assert args.records == ['{"id": 1}', '-']


def test_records_parser_requires_where_for_writes():
    parser = argparse.ArgumentParser()
    subparsers = parser.add_subparsers(dest='command')
    get_records_parser(subparsers)

    with pytest.raises(SystemExit):
        parser.parse_args(['delete'])
    with pytest.raises(SystemExit):
        parser.parse_args(['update', '{"id": 1}'])
    with pytest.raises(SystemExit):
        parser.parse_args(['delete', '-w', 'novalue'])
