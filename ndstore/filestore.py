"""
-----------------
ndstore.filestore
-----------------

File record store.

This module provides an implementation of :class:`ndstore.storeapi.RecordReader` and
:class:`ndstore.storeapi.RecordWriter` that keeps the records in a single plain-text
file, one serialized record per line.

The file is the whole state of the store. Plain text is chosen so that the file can
also be read and processed by other tools (such as ``grep`` or ``jq``). Blank lines
are skipped when reading and are never written.

New records are appended at the end of the file. Updates and deletes rewrite the
file: the records are streamed from the backing file into a temporary file next to
it (``<path>.tmp.ndjson`` by default), and if anything changed the temporary file is
moved in place of the backing file with a single atomic rename. A reader that opens
the file sees either the old or the new content, never a mix of the two.

All operations go through the :class:`ndstore.opqueue.OperationQueue` of the store,
so they never interleave. Here is an example of usage:

.. code-block:: python

    import asyncio
    from ndstore.filestore import FileRecordStore

    async def main():
        store = FileRecordStore('./people.ndjson')

        await store.append([{'id': 1, 'name': 'Ann'},
                            {'id': 2, 'name': 'Bob'},
                            {'id': 3, 'name': 'Cid'}])

        await store.delete_records(lambda rec: rec['id'] == 2)
        await store.update_records(lambda rec: rec['id'] == 3, {'id': 3, 'name': 'Cyd'})

        for rec in await store.get_all():
            print('Found:', rec['name'])

    asyncio.run(main())

would print::

    >> Found: Ann
    >> Found: Cyd

**Limitations:** the lock is held in-process, per store instance. Two store instances
on the same file, or two processes writing the same file, are not coordinated.
"""

import asyncio
import inspect
import os
from contextlib import aclosing, asynccontextmanager
from functools import partial
from logging import getLogger
from os.path import basename

from ndstore.model import RecordParser, RecordSerializer
from ndstore.opqueue import OperationQueue
from ndstore.storeapi import (RecordReader,
                              RecordWriter,
                              RecordReadException,
                              RecordWriteException,
                              RecordSwapException,
                              StoreFileNotFound)


log = getLogger(__name__)


TMP_SUFFIX = '.tmp.ndjson'
"""Suffix appended to the path of the backing file to get the temporary file path.
"""

UPDATE = 'update'
DELETE = 'delete'


async def _run_blocking(func, *args):
    """Runs a blocking file-system call in the default executor of the running loop.
    """
    return await asyncio.get_running_loop().run_in_executor(None, partial(func, *args))


async def _call(func, *args):
    result = func(*args)
    if inspect.isawaitable(result):
        result = await result
    return result


def _open_existing(path):
    try:
        return open(path, 'rb')
    except FileNotFoundError:
        return None


def _write_bytes(path, data, mode, sync=False):
    with open(path, mode) as out:
        out.write(data)
        if sync:
            out.flush()
            os.fsync(out.fileno())


def _file_size(path):
    return os.stat(path).st_size


def check_encoding(encoding):
    """Checks that the encoding can be used for a line-delimited store file.

    The store splits the raw file content on ``b'\\n'``, so the encoding must be
    known and must encode the line terminator as that single byte. This rules out
    encodings such as ``utf-16`` or ``utf-8-sig``.

    :param encoding: ``str``, the name of the encoding.

    Raises :class:`ValueError` if the encoding cannot be used.
    """
    try:
        newline = '\n'.encode(encoding)
    except LookupError as e:
        raise ValueError('Unknown encoding: %s' % encoding) from e
    if newline != b'\n':
        raise ValueError('Encoding %s does not write lines as "\\n"-separated bytes' % encoding)


class LineReader:
    """Reads lines from a binary file without blocking the event loop.

    The file is read in chunks of ``chunk_size`` bytes in the default executor. The
    lines are yielded as ``bytes``, without the line terminator.

    The reader implements the asynchronous context manager interface and closes the
    underlying file on exit:

    .. code-block:: python

        async with LineReader(open(path, 'rb')) as reader:
            async for line in reader.lines():
                print(reader.line_number, line)

    :param stream: binary file object opened for reading.
    :param chunk_size: ``int``, number of bytes to read at once.
    """
    def __init__(self, stream, chunk_size=65536):
        self.stream = stream
        self.chunk_size = chunk_size
        self.line_number = 0

    async def lines(self):
        """Yields the lines of the file, one by one.

        ``line_number`` holds the 1-based number of the last yielded line.
        """
        # pieces of the unterminated line, joined once its end is found
        parts = []
        while True:
            try:
                chunk = await _run_blocking(self.stream.read, self.chunk_size)
            except OSError as e:
                raise RecordReadException('Error while reading %s: %s' %
                                          (getattr(self.stream, 'name', self.stream), e)) from e
            if not chunk:
                break
            lines = chunk.split(b'\n')
            tail = lines.pop()
            if lines:
                parts.append(lines[0])
                lines[0] = b''.join(parts)
                parts = []
                for line in lines:
                    self.line_number += 1
                    yield line
            if tail:
                parts.append(tail)
        if parts:
            self.line_number += 1
            yield b''.join(parts)

    def close(self):
        """Closes the underlying file.
        """
        self.stream.close()

    async def __aenter__(self):
        return self

    async def __aexit__(self, *args):
        self.close()


class FileRecordStore(RecordReader, RecordWriter):
    """Record store that keeps the records in a single line-delimited file.

    The backing file does not need to exist when the store is created. It is created
    by the first write; until then the store is empty.

    :param path: ``str``, path of the backing file.
    :param serializer: :class:`ndstore.model.RecordSerializer`, optional, the serializer
        for the records. Defaults to the JSON serializer.
    :param parser: :class:`ndstore.model.RecordParser`, optional, the parser for the
        records. Defaults to the JSON parser.
    :param encoding: ``str``, encoding of the backing file. Default is ``utf-8``.
    :param tmp_suffix: ``str``, suffix added to ``path`` to build the path of the
        temporary file used by updates and deletes.
    :param fsync: ``bool``, sync the temporary file to disk before it replaces the
        backing file. Default is ``True``.
    :param batch_size: ``int``, number of records buffered before they are written to
        the temporary file during a rewrite.
    :param chunk_size: ``int``, number of bytes read from the file at once.
    """
    def __init__(self, path, serializer=None, parser=None, encoding='utf-8',
                 tmp_suffix=TMP_SUFFIX, fsync=True, batch_size=512, chunk_size=65536):
        if not tmp_suffix:
            raise ValueError('tmp_suffix must not be empty')
        check_encoding(encoding)
        self._path = os.fspath(path)
        self._tmp_path = self._path + tmp_suffix
        self.encoding = encoding
        self.serializer = serializer or RecordSerializer(encoding=encoding)
        self.parser = parser or RecordParser(encoding=encoding)
        self.fsync = fsync
        self.batch_size = max(1, batch_size)
        self.chunk_size = chunk_size
        self.queue = OperationQueue(name=basename(self._path))

    @property
    def path(self):
        """``str``, path of the backing file.
        """
        return self._path

    @property
    def tmp_path(self):
        """``str``, path of the temporary file used when rewriting the backing file.
        """
        return self._tmp_path

    # read path

    async def for_each(self, visitor, wait_for_unlock=True):
        await self.queue.enqueue(partial(self._visit, visitor), wait_for_unlock)

    async def get_all(self, wait_for_unlock=True):
        records = []
        await self.for_each(records.append, wait_for_unlock)
        return records

    async def find_one(self, predicate, wait_for_unlock=True):
        found = []

        async def visitor(record):
            if await _call(predicate, record):
                found.append(record)
                return False
            return True

        await self.for_each(visitor, wait_for_unlock)
        return found[0] if found else None

    async def find_all(self, predicate, wait_for_unlock=True):
        found = []

        async def visitor(record):
            if await _call(predicate, record):
                found.append(record)

        await self.for_each(visitor, wait_for_unlock)
        return found

    async def count(self, wait_for_unlock=True):
        return len(await self.get_all(wait_for_unlock))

    async def size_on_disk(self):
        try:
            return await _run_blocking(_file_size, self._path)
        except FileNotFoundError as e:
            raise StoreFileNotFound('Store file does not exist: %s' % self._path) from e
        except OSError as e:
            raise RecordReadException('Cannot stat %s: %s' % (self._path, e)) from e

    @asynccontextmanager
    async def stream(self, wait_for_unlock=True):
        """Streams the records of the store.

        Returns an asynchronous context manager that yields an asynchronous iterator
        over the records. The store is locked for the duration of the ``async with``
        block, and the backing file is closed when the block exits, even if the
        iteration was stopped early:

        .. code-block:: python

            async with store.stream() as records:
                async for record in records:
                    if record['id'] == 3:
                        break

        :param wait_for_unlock: ``bool``, wait for pending operations first.
        """
        async with self.queue.admit(wait_for_unlock):
            async with aclosing(self._records()) as records:
                yield records

    async def _visit(self, visitor):
        async with aclosing(self._records()) as records:
            async for record in records:
                if await _call(visitor, record) is False:
                    break

    async def _records(self, with_lines=False):
        try:
            stream = await _run_blocking(_open_existing, self._path)
        except OSError as e:
            raise RecordReadException('Cannot open %s: %s' % (self._path, e)) from e
        if stream is None:
            return
        async with LineReader(stream, self.chunk_size) as reader:
            async with aclosing(reader.lines()) as lines:
                async for line in lines:
                    if not line.strip():
                        continue
                    record = self.parser.parse(line, line_number=reader.line_number)
                    if with_lines:
                        yield line, record
                    else:
                        yield record

    # write path

    async def append(self, records):
        records = list(records)
        data = self._join([self._encode(record) for record in records])
        await self.queue.enqueue(partial(self._write, self._path, data, 'ab'))
        log.debug('Appended %d records to %s', len(records), self._path)

    async def update_records(self, predicate, new_record):
        return await self._replace_filtered(predicate, UPDATE, new_record)

    async def delete_records(self, predicate):
        return await self._replace_filtered(predicate, DELETE)

    async def delete_all_records(self):
        await self.queue.enqueue(partial(self._write, self._path, b'', 'wb'))
        log.debug('Cleared %s', self._path)

    async def close(self):
        """Waits for the pending operations to complete.
        """
        await self.queue.drain()

    async def _replace_filtered(self, predicate, mode, new_record=None):
        """Rewrites the backing file, replacing or dropping the records that match the
        predicate.

        :param predicate: ``function``, selects the records to replace or delete.
        :param mode: ``str``, either :data:`UPDATE` or :data:`DELETE`.
        :param new_record: the replacement record in :data:`UPDATE` mode.

        Returns the number (``int``) of matched records. The backing file is left
        untouched when nothing matched.
        """
        if mode not in (UPDATE, DELETE):
            raise ValueError('Unknown replace mode: %s' % mode)
        replacement = None
        if mode == UPDATE:
            replacement = self._encode(new_record)
        return await self.queue.enqueue(partial(self._rewrite, predicate, mode, replacement))

    async def _rewrite(self, predicate, mode, replacement):
        keep_tmp = False
        try:
            matched = await self._fill_tmp(predicate, mode, replacement)
            if matched:
                keep_tmp = True
                await self._swap_in()
        finally:
            if not keep_tmp:
                await self._discard_tmp()
        log.debug('%s: %d records matched in %s', mode, matched, self._path)
        return matched

    async def _fill_tmp(self, predicate, mode, replacement):
        await self._write(self._tmp_path, b'', 'wb')
        matched = 0
        batch = []
        async with aclosing(self._records(with_lines=True)) as entries:
            async for line, record in entries:
                if await _call(predicate, record):
                    matched += 1
                    if mode == DELETE:
                        continue
                    batch.append(replacement)
                else:
                    batch.append(line)
                if len(batch) >= self.batch_size:
                    await self._write(self._tmp_path, self._join(batch), 'ab')
                    batch = []
        if matched:
            await self._write(self._tmp_path, self._join(batch), 'ab', self.fsync)
        return matched

    async def _swap_in(self):
        try:
            await _run_blocking(os.replace, self._tmp_path, self._path)
        except OSError as e:
            log.error('Could not move %s in place of %s. The rewritten records are left in %s. Error: %s',
                      self._tmp_path, self._path, self._tmp_path, e)
            raise RecordSwapException('Could not replace %s: %s' % (self._path, e),
                                      tmp_path=self._tmp_path) from e

    async def _discard_tmp(self):
        try:
            await _run_blocking(os.remove, self._tmp_path)
        except FileNotFoundError:
            pass
        except OSError as e:
            log.warning('Could not delete temporary file %s. Error: %s', self._tmp_path, e)

    async def _write(self, path, data, mode, sync=False):
        try:
            await _run_blocking(_write_bytes, path, data, mode, sync)
        except OSError as e:
            raise RecordWriteException('Cannot write to %s: %s' % (path, e)) from e

    def _encode(self, record):
        """Serializes one record into the bytes of a single non-blank line, without the
        terminator.
        """
        line = self.serializer.serialize(record)
        if '\n' in line or '\r' in line:
            raise RecordWriteException('Serialized record spans multiple lines')
        if not line.strip():
            raise RecordWriteException('Serialized record is blank')
        try:
            return line.encode(self.encoding)
        except UnicodeEncodeError as e:
            raise RecordWriteException('Record cannot be encoded as %s: %s' % (self.encoding, e)) from e

    @staticmethod
    def _join(lines):
        return b''.join(line + b'\n' for line in lines)

    def __repr__(self):
        return 'FileRecordStore<%s>' % self._path
