"""
---------------
ndstore.opqueue
---------------

Operation queue.

Every :class:`ndstore.filestore.FileRecordStore` owns one :class:`OperationQueue`.
The queue admits the store operations one after another, in the order they were
submitted, so that reads and writes on the backing file never interleave.

The queue keeps track of the latest admitted operation only (the *tail*). A new
operation that wants to be ordered waits for the tail to settle before it starts,
then becomes the new tail itself. Because each operation settles only after its
predecessor, the operations form a FIFO chain.

An operation may also be admitted without waiting. It starts right away, in
parallel with whatever is queued, but it still becomes the tail: operations that
are submitted later and want to be ordered wait for it, and for everything that was
admitted before it.

Here is an example of usage:

.. code-block:: python

    queue = OperationQueue()

    async def write():
        ...

    # these two never overlap
    await asyncio.gather(queue.enqueue(write), queue.enqueue(write))

    # holds the slot for the whole block
    async with queue.admit():
        ...

The lock is advisory and in-process only. Two queues never coordinate with each
other, even when their stores point to the same file.
"""
import asyncio
from contextlib import asynccontextmanager
from logging import getLogger


log = getLogger(__name__)


class OperationQueue:
    """FIFO admission gate for asynchronous operations.

    The instances are bound to no particular event loop, but the operations that
    are pending at the same time must run on the same loop.

    :param name: ``str``, optional, name of the queue used in the log messages.
    """
    def __init__(self, name=None):
        self.name = name or 'queue@%x' % id(self)
        self._tail = None
        self._seq = 0

    @property
    def pending(self):
        """``True`` if some admitted operation has not settled yet.
        """
        return self._tail is not None and not self._tail.done()

    @asynccontextmanager
    async def admit(self, wait_for_prior=True):
        """Admits an operation and holds its slot for the body of the ``async with``
        block.

        :param wait_for_prior: ``bool``, if ``True`` the block is entered only after
            every previously admitted operation has settled. If ``False`` the block is
            entered immediately.

        The slot is released when the block exits, whether it completes or raises.
        """
        prior = self._tail
        marker = asyncio.get_running_loop().create_future()
        self._tail = marker
        self._seq += 1
        seq = self._seq
        log.debug('[%s] operation #%d admitted (wait=%s)', self.name, seq, wait_for_prior)
        try:
            if wait_for_prior and prior is not None and not prior.done():
                # shielded so that cancelling this waiter does not cancel the predecessor
                await asyncio.shield(prior)
            yield
        finally:
            self._release(marker, prior)
            log.debug('[%s] operation #%d released', self.name, seq)

    async def enqueue(self, work, wait_for_prior=True):
        """Runs ``work`` as an admitted operation.

        :param work: ``function``, a coroutine function that takes no arguments.
        :param wait_for_prior: ``bool``, wait for every previously admitted operation to
            settle before starting ``work``.

        Returns the result of ``work``. If ``work`` raises, the error is raised here as
        well, but the queue itself moves on to the next operation.
        """
        async with self.admit(wait_for_prior):
            return await work()

    async def drain(self):
        """Waits until every operation admitted so far has settled.
        """
        tail = self._tail
        if tail is not None and not tail.done():
            await asyncio.shield(tail)

    def _release(self, marker, prior):
        if prior is None or prior.done():
            self._settle(marker)
        else:
            # started without waiting and finished first; the marker must not
            # resolve before the predecessor does
            prior.add_done_callback(lambda _: self._settle(marker))

    def _settle(self, marker):
        if not marker.done():
            marker.set_result(None)
        if self._tail is marker:
            self._tail = None

    def __repr__(self):
        return 'OperationQueue<%s pending=%s>' % (self.name, self.pending)
