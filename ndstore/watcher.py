"""
---------------
ndstore.watcher
---------------

Store file follower.

Watches the backing file of a store for changes and emits the records as they are
appended to it, similar to ``tail -f``.
"""
from logging import getLogger
from os import fsdecode
from os.path import getsize, isdir, isfile, dirname, realpath

from watchdog.events import FileSystemEventHandler

from ndstore.model import RecordParser
from ndstore.storeapi import RecordParseException


log = getLogger(__name__)


class RecordFollower:
    """Follows the records appended to a store file.

    The underlying file does not have to exist at the moment of creation of this
    :class:`RecordFollower`. Only the records appended after the follower was
    created are emitted.

    :param str path: the path to the store file to follow.
    :param function callback: called with each appended record:

        .. code-block:: python

            def callback(record):
                pass

    :param ndstore.model.RecordParser parser: parser for the records. Defaults to
        the JSON parser.
    :param str encoding: the file encoding. If not specified, ``utf-8`` is assumed.
    :param function on_reset: optional, called with the path when the file was
        truncated, replaced or recreated. The records that were already in the new
        file at that moment are not emitted.

    """
    def __init__(self, path, callback, parser=None, encoding='utf-8', on_reset=None):
        self.path = path
        self.callback = callback
        self.parser = parser or RecordParser(encoding=encoding)
        self.on_reset = on_reset
        self.position = 0
        self._partial = b''
        self._setup()

    def modified(self):
        """Reads the data appended since the last call and emits the complete records.

        A line that is not yet terminated is kept back until the rest of it arrives.
        """
        if not isfile(self.path):
            return
        if getsize(self.path) < self.position:
            self.reset()
            return
        self._emit(self._get_diff())

    def created(self):
        """Called when the file has been (re)created.

        Everything written to a freshly created file counts as appended, so the
        follower starts again from the beginning of the file.
        """
        self.position = 0
        self._partial = b''
        if self.on_reset:
            self.on_reset(self.path)
        self.modified()

    def replaced(self):
        """Called when another file has been moved in place of the followed file.
        """
        self.reset()

    def removed(self):
        """Called when the file has been removed. Does not trigger the callbacks.
        """
        self.position = 0
        self._partial = b''

    def reset(self):
        """Skips to the current end of the file and notifies the ``on_reset`` handler.
        """
        self.position = getsize(self.path) if isfile(self.path) else 0
        self._partial = b''
        log.debug('Follower reset on %s at position %d', self.path, self.position)
        if self.on_reset:
            self.on_reset(self.path)

    def _emit(self, data):
        lines = (self._partial + data).split(b'\n')
        self._partial = lines.pop()
        for line in lines:
            if not line.strip():
                continue
            try:
                record = self.parser.parse(line)
            except RecordParseException as e:
                log.warning('Skipping malformed record in %s: %s', self.path, e)
                continue
            self.callback(record)

    def _get_diff(self):
        with open(self.path, 'rb') as source_file:
            source_file.seek(self.position)
            diff = source_file.read()
            self.position = source_file.tell()
            return diff

    def _setup(self):
        if isfile(self.path):
            self.position = getsize(self.path)
        elif isdir(self.path):
            raise Exception('Not a file: %s' % self.path)


class StoreFileEventHandler(FileSystemEventHandler):
    """Implements :class:`watchdog.events.FileSystemEventHandler` and passes the
    events triggered by the watchdog Observer down to the registered handlers.

    The handlers are given as a ``dict`` whose keys are the names of the events:

    * ``moved`` - ``handler(src_path, dest_path)``
    * ``created`` - ``handler(file_path)``
    * ``modified`` - ``handler(file_path)``
    * ``deleted`` - ``handler(file_path)``

    :param dict handlers: a ``dict`` of handlers for specific events.
    """
    def __init__(self, handlers):
        self.handlers = handlers

    def _notify(self, event, *args):
        hnd = self.handlers.get(event)
        if hnd:
            hnd(*[fsdecode(arg) for arg in args])

    def on_moved(self, event):
        self._notify('moved', event.src_path, event.dest_path)

    def on_created(self, event):
        self._notify('created', event.src_path)

    def on_deleted(self, event):
        self._notify('deleted', event.src_path)

    def on_modified(self, event):
        self._notify('modified', event.src_path)


class FollowDaemon:
    """Runs a :class:`RecordFollower` on top of a :mod:`watchdog` observer.

    The observer watches the directory of the store file and the daemon passes on
    only the events that concern the store file itself. The rewrite of a store moves
    its temporary file onto the store file, which is seen here as a ``moved`` event
    whose destination is the store file.

    :param watchdog.observers.Observer observer: the observer to use.
    :param RecordFollower follower: the follower to notify.
    """
    def __init__(self, observer, follower):
        self.observer = observer
        self.follower = follower
        self.target = realpath(follower.path)
        self.handler = StoreFileEventHandler(handlers={
            'moved': self._moved,
            'created': self._created,
            'deleted': self._deleted,
            'modified': self._modified
        })

    def start(self):
        """Starts watching the store file.
        """
        self.observer.schedule(self.handler, dirname(self.target), recursive=False)
        self.observer.start()
        log.info('Following %s', self.target)

    def stop(self):
        """Stops the observer and waits for its thread to finish.
        """
        self.observer.stop()
        self.observer.join()
        log.info('Stopped following %s', self.target)

    def _is_target(self, path):
        return realpath(path) == self.target

    def _moved(self, src_path, dest_path):
        if self._is_target(dest_path):
            self.follower.replaced()
        elif self._is_target(src_path):
            self.follower.removed()

    def _created(self, src_path):
        if self._is_target(src_path):
            self.follower.created()

    def _deleted(self, src_path):
        if self._is_target(src_path):
            self.follower.removed()

    def _modified(self, src_path):
        if self._is_target(src_path):
            self.follower.modified()
