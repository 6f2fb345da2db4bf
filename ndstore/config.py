"""
--------------
ndstore.config
--------------

Store configuration.

The configuration is kept in a YAML file. All keys are optional:

.. code-block:: yaml

    path: ./data/people.ndjson
    encoding: utf-8
    tmp_suffix: .tmp.ndjson
    fsync: true
    batch_size: 512
    log_level: INFO
    server:
      host: localhost
      port: 6480

Values given on the command line override the values from the file.
"""
from logging import getLevelName, getLogger

import yaml

from ndstore.filestore import FileRecordStore, TMP_SUFFIX, check_encoding


log = getLogger(__name__)


class ConfigException(Exception):
    """Raised when the configuration cannot be loaded or is invalid.
    """
    pass


class StoreConfig:
    """Holds the configuration of a store and of the tools around it.

    :param path: ``str``, path of the backing file of the store.
    :param encoding: ``str``, the file encoding.
    :param tmp_suffix: ``str``, suffix of the temporary file used in rewrites.
    :param fsync: ``bool``, sync rewritten files to disk before swapping them in.
    :param batch_size: ``int``, records buffered per write during rewrites.
    :param host: ``str``, hostname the server binds to.
    :param port: ``int``, port the server listens on.
    :param log_level: ``str``, name of the logging level.
    """

    KEYS = ('path', 'encoding', 'tmp_suffix', 'fsync', 'batch_size', 'log_level', 'server')
    SERVER_KEYS = ('host', 'port')

    def __init__(self, path=None, encoding='utf-8', tmp_suffix=TMP_SUFFIX, fsync=True,
                 batch_size=512, host='localhost', port=6480, log_level='WARNING'):
        self.path = path
        self.encoding = encoding
        self.tmp_suffix = tmp_suffix
        self.fsync = fsync
        self.batch_size = batch_size
        self.host = host
        self.port = port
        self.log_level = log_level

    @classmethod
    def from_dict(cls, data):
        """Builds the configuration from a ``dict`` (as loaded from YAML).
        """
        if data is None:
            return cls()
        if not isinstance(data, dict):
            raise ConfigException('configuration must be a mapping')
        unknown = set(data) - set(cls.KEYS)
        if unknown:
            raise ConfigException('unknown configuration keys: %s' % ', '.join(sorted(unknown)))
        values = {k: v for k, v in data.items() if k != 'server'}
        server = data.get('server') or {}
        if not isinstance(server, dict):
            raise ConfigException('"server" must be a mapping')
        unknown = set(server) - set(cls.SERVER_KEYS)
        if unknown:
            raise ConfigException('unknown server keys: %s' % ', '.join(sorted(unknown)))
        values.update(server)
        config = cls(**values)
        config.validate()
        return config

    def validate(self):
        """Checks the types of the configured values.
        """
        if self.path is not None and not isinstance(self.path, str):
            raise ConfigException('"path" must be a string')
        if not isinstance(self.encoding, str):
            raise ConfigException('"encoding" must be a string')
        try:
            check_encoding(self.encoding)
        except ValueError as e:
            raise ConfigException(str(e)) from e
        if not self.tmp_suffix or not isinstance(self.tmp_suffix, str):
            raise ConfigException('"tmp_suffix" must be a non-empty string')
        if not isinstance(self.batch_size, int) or self.batch_size < 1:
            raise ConfigException('"batch_size" must be a positive integer')
        if not isinstance(self.port, int):
            raise ConfigException('"server.port" must be an integer')
        if not isinstance(getLevelName(str(self.log_level).upper()), int):
            raise ConfigException('unknown log level: %s' % self.log_level)

    def merge(self, **overrides):
        """Applies the overrides that are not ``None``.

        Returns this configuration.
        """
        for key, value in overrides.items():
            if not hasattr(self, key):
                raise ConfigException('unknown configuration key: %s' % key)
            if value is not None:
                setattr(self, key, value)
        return self

    def __repr__(self):
        return 'StoreConfig<path=%s host=%s port=%s>' % (self.path, self.host, self.port)


def load_config(file_path):
    """Loads the configuration from a YAML file.

    :param file_path: ``str``, path of the YAML file.

    Returns :class:`StoreConfig`.
    """
    try:
        with open(file_path, 'r', encoding='utf-8') as config_file:
            data = yaml.safe_load(config_file)
    except OSError as e:
        raise ConfigException('cannot read configuration %s: %s' % (file_path, e)) from e
    except yaml.YAMLError as e:
        raise ConfigException('invalid YAML in %s: %s' % (file_path, e)) from e
    log.debug('Loaded configuration from %s', file_path)
    return StoreConfig.from_dict(data)


def create_store(config):
    """Creates new :class:`ndstore.filestore.FileRecordStore` from the configuration.

    :param config: :class:`StoreConfig`, the configuration. ``path`` must be set.

    Returns the store.
    """
    if not config.path:
        raise ConfigException('store path is not configured')
    return FileRecordStore(config.path,
                           encoding=config.encoding,
                           tmp_suffix=config.tmp_suffix,
                           fsync=config.fsync,
                           batch_size=config.batch_size)
