import argparse
import os
import tempfile
from unittest import mock

from ndstore.cli.follow import get_parser, run_follow
from ndstore.cli.serve import get_parser as get_serve_parser, run_server
from ndstore.config import StoreConfig


def test_follow_and_serve_parsers():
    parser = argparse.ArgumentParser()
    subparsers = parser.add_subparsers(dest='command')
    get_parser(subparsers)
    get_serve_parser(subparsers)

    args = parser.parse_args(['follow', '--notify-reset'])
    assert args.notify_reset is True

    args = parser.parse_args(['serve', '-H', '0.0.0.0', '--port', '7001'])
    assert args.server_host == '0.0.0.0'
    assert args.server_port == 7001


@mock.patch('ndstore.cli.follow.signal')
@mock.patch('ndstore.cli.follow.threading')
@mock.patch('ndstore.cli.follow.Observer')
def test_run_follow(m_observer, m_threading, m_signal):
    m_threading.Event.return_value.wait.return_value = True

    with tempfile.TemporaryDirectory() as tmpdir:
        config = StoreConfig(path=os.path.join(tmpdir, 'records.ndjson'))
        assert run_follow(argparse.Namespace(notify_reset=False), config) == 0

        observer = m_observer.return_value
        observer.schedule.assert_called_once_with(mock.ANY, os.path.realpath(tmpdir), recursive=False)
        observer.start.assert_called_once_with()
        observer.stop.assert_called_once_with()
        assert m_signal.signal.call_count == 2


@mock.patch('ndstore.cli.serve._serve', new_callable=mock.AsyncMock)
def test_run_server_applies_overrides(m_serve):
    with tempfile.TemporaryDirectory() as tmpdir:
        config = StoreConfig(path=os.path.join(tmpdir, 'records.ndjson'), port=6000)
        args = argparse.Namespace(server_host=None, server_port=7002)

        assert run_server(args, config) == 0

    server = m_serve.call_args[0][0]
    assert server.host == 'localhost'
    assert server.port == 7002
    assert server.store.path == config.path
