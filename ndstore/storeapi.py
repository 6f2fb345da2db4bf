"""
----------------
ndstore.storeapi
----------------

Record Store API
^^^^^^^^^^^^^^^^

Defines the reader and writer interfaces of a record store, and the exceptions
raised when implementing or using one.

All operations are coroutines and must be awaited from within a running
:mod:`asyncio` event loop.

Predicates and visitors passed to the store are callables that take a single
record. They may be plain functions or coroutine functions; the store awaits the
result when it is awaitable.
"""
from abc import abstractmethod


class RecordReader:
    """RecordReader is the read side of a record store.

    The read operations accept ``wait_for_unlock``. When ``True`` (the default) the
    operation is queued behind every pending operation on the store and sees the
    result of all of them. When ``False`` the operation starts immediately and reads
    whatever is on disk at that moment.
    """

    @abstractmethod
    async def get_all(self, wait_for_unlock=True):
        """Loads all records at once.

        This can be problematic if the number of records is large; use
        :meth:`for_each` or a streaming read instead.

        :param wait_for_unlock: ``bool``, wait for pending operations first.

        Returns a ``list`` of records in file order.
        """
        pass

    @abstractmethod
    async def find_one(self, predicate, wait_for_unlock=True):
        """Finds the first record that matches the predicate.

        Reading stops at the first match.

        :param predicate: ``function``, called with each record, returns ``bool``.
        :param wait_for_unlock: ``bool``, wait for pending operations first.

        Returns the matched record or ``None``.
        """
        pass

    @abstractmethod
    async def find_all(self, predicate, wait_for_unlock=True):
        """Finds all records that match the predicate.

        :param predicate: ``function``, called with each record, returns ``bool``.
        :param wait_for_unlock: ``bool``, wait for pending operations first.

        Returns a ``list`` of the matched records in file order.
        """
        pass

    @abstractmethod
    async def for_each(self, visitor, wait_for_unlock=True):
        """Calls the visitor with every record, in file order.

        The visitor returns ``False`` to stop the iteration. Any other value
        (including ``None``) continues with the next record.

        :param visitor: ``function``, called with each record.
        :param wait_for_unlock: ``bool``, wait for pending operations first.
        """
        pass

    @abstractmethod
    async def count(self, wait_for_unlock=True):
        """Returns the number of records in the store.

        :param wait_for_unlock: ``bool``, wait for pending operations first.
        """
        pass

    @abstractmethod
    async def size_on_disk(self):
        """Returns the size in bytes of the store on the file system.

        Raises :class:`StoreFileNotFound` if the store has no backing file yet.
        """
        pass


class RecordWriter:
    """RecordWriter is the write side of a record store.

    Every write operation is queued behind all pending operations on the store,
    so writes never interleave with each other or with ordered reads.
    """

    async def add(self, record):
        """Adds a single record at the end of the store.

        :param record: the record to add.
        """
        await self.append([record])

    @abstractmethod
    async def append(self, records):
        """Adds many records at the end of the store, in the given order.

        The records are written with a single write to the backing file.

        :param records: ``list`` of records to add.
        """
        pass

    @abstractmethod
    async def update_records(self, predicate, new_record):
        """Replaces every record matching the predicate with ``new_record``.

        The relative order of the records is preserved, and so is their count.
        The change is atomic: the store is either fully updated or left as it was.

        :param predicate: ``function``, called with each record, returns ``bool``.
        :param new_record: the replacement record.

        Returns the number (``int``) of replaced records.
        """
        pass

    @abstractmethod
    async def delete_records(self, predicate):
        """Deletes every record matching the predicate.

        The change is atomic: the store is either fully updated or left as it was.

        :param predicate: ``function``, called with each record, returns ``bool``.

        Returns the number (``int``) of deleted records.
        """
        pass

    @abstractmethod
    async def delete_all_records(self):
        """Deletes all records unconditionally.
        """
        pass

    async def replace_all(self, predicate, new_record):
        """Same as :meth:`update_records`."""
        return await self.update_records(predicate, new_record)

    async def delete_where(self, predicate):
        """Same as :meth:`delete_records`."""
        return await self.delete_records(predicate)

    async def clear(self):
        """Same as :meth:`delete_all_records`."""
        await self.delete_all_records()


class RecordStoreException(Exception):
    """General store error.
    """
    pass


class RecordReadException(RecordStoreException):
    """Represents an error while reading records from the underlying storage.
    """
    pass


class StoreFileNotFound(RecordReadException):
    """Raised if the backing file of the store does not exist.
    """
    pass


class RecordParseException(RecordReadException):
    """Raised when a line of the backing file cannot be decoded into a record.

    :param message: ``str``, the error message.
    :param line_number: ``int``, 1-based number of the offending line, if known.
    :param line: ``str``, the offending line, if known.
    """
    def __init__(self, message, line_number=None, line=None):
        super(RecordParseException, self).__init__(message)
        self.line_number = line_number
        self.line = line


class RecordWriteException(RecordStoreException):
    """Represents an error while writing records to the underlying storage.
    """
    pass


class RecordSwapException(RecordWriteException):
    """Raised when the rewritten temporary file could not be moved in place of the
    backing file.

    The rewritten data is left in ``tmp_path`` and must be recovered manually.

    :param message: ``str``, the error message.
    :param tmp_path: ``str``, path of the temporary file holding the rewritten data.
    """
    def __init__(self, message, tmp_path=None):
        super(RecordSwapException, self).__init__(message)
        self.tmp_path = tmp_path
