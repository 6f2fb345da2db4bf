import os
import tempfile

import pytest

from ndstore.config import StoreConfig, ConfigException, load_config, create_store
from ndstore.filestore import FileRecordStore, TMP_SUFFIX


def _config_file(tmpdir, content):
    path = os.path.join(tmpdir, 'ndstore.yaml')
    with open(path, 'w') as f:
        f.write(content)
    return path


def test_defaults():
    config = StoreConfig()

    assert config.path is None
    assert config.encoding == 'utf-8'
    assert config.tmp_suffix == TMP_SUFFIX
    assert config.fsync is True
    assert config.host == 'localhost'
    assert config.port == 6480


def test_load_config():
    with tempfile.TemporaryDirectory() as tmpdir:
        path = _config_file(tmpdir, '\n'.join([
            'path: ./data.ndjson',
            'fsync: false',
            'batch_size: 10',
            'log_level: info',
            'server:',
            '  host: 0.0.0.0',
            '  port: 7000',
        ]))

        config = load_config(path)

    assert config.path == './data.ndjson'
    assert config.fsync is False
    assert config.batch_size == 10
    assert config.host == '0.0.0.0'
    assert config.port == 7000


def test_load_empty_config():
    with tempfile.TemporaryDirectory() as tmpdir:
        config = load_config(_config_file(tmpdir, ''))

    assert config.path is None


def test_load_config_with_single_byte_encoding():
    with tempfile.TemporaryDirectory() as tmpdir:
        config = load_config(_config_file(tmpdir, 'encoding: latin-1'))

    assert config.encoding == 'latin-1'


@pytest.mark.parametrize('content', [
    'unknown: 1',
    'server:\n  unknown: 1',
    'server: 5',
    '- a list',
    'batch_size: 0',
    'tmp_suffix: ""',
    'log_level: LOUD',
    'server:\n  port: http',
    'path: [1, 2]',
    'path: [unclosed',
    'encoding: utf-16',
    'encoding: utf-8-sig',
    'encoding: no-such-codec',
    'encoding: 8',
])
def test_invalid_config(content):
    with tempfile.TemporaryDirectory() as tmpdir:
        path = _config_file(tmpdir, content)

        with pytest.raises(ConfigException):
            load_config(path)


def test_missing_config_file():
    with pytest.raises(ConfigException):
        load_config('/does/not/exist.yaml')


def test_merge_overrides():
    config = StoreConfig(path='a.ndjson', port=1)

    config.merge(path=None, port=2)

    assert config.path == 'a.ndjson'
    assert config.port == 2

    with pytest.raises(ConfigException):
        config.merge(colour='blue')


def test_create_store():
    config = StoreConfig(path='data.ndjson', tmp_suffix='.swap', fsync=False, batch_size=7)

    store = create_store(config)

    assert isinstance(store, FileRecordStore)
    assert store.path == 'data.ndjson'
    assert store.tmp_path == 'data.ndjson.swap'
    assert store.fsync is False
    assert store.batch_size == 7

    with pytest.raises(ConfigException):
        create_store(StoreConfig())
