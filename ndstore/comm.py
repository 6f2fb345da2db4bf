"""
------------
ndstore.comm
------------

Store server and client.

Exposes a record store over WebSocket connections. The server and the client are
built on top of :mod:`asyncio` and :mod:`websockets`.

Each request is a JSON object with an ``action`` and the action parameters. Each
response is a JSON object that holds either the result of the action or an error:

.. code-block:: text

    > {"action": "append", "records": [{"id": 1}, {"id": 2}]}
    < {"ok": true, "result": 2}
    > {"action": "find", "where": {"id": 2}}
    < {"ok": true, "result": [{"id": 2}]}
    > {"action": "size"}
    < {"ok": false, "error": "Store file does not exist: ./data.ndjson"}

Supported actions:

* ``append`` - ``records``: list of records. Returns the number of appended records.
* ``all`` - returns all records.
* ``find`` - ``where``: criteria. Returns all matching records.
* ``first`` - ``where``: criteria. Returns the first matching record or ``null``.
* ``update`` - ``where``: criteria, ``record``: the replacement. Returns the number
  of replaced records.
* ``delete`` - ``where``: criteria. Returns the number of deleted records.
* ``clear`` - deletes all records.
* ``count`` - returns the number of records.
* ``size`` - returns the size of the store file in bytes.

The read actions accept ``"wait": false`` to skip waiting for pending operations.
See :mod:`ndstore.criteria` for the format of ``where``.
"""

import asyncio
import json
from logging import getLogger

import websockets

from ndstore.criteria import where
from ndstore.storeapi import RecordStoreException


log = getLogger(__name__)


class RequestException(Exception):
    """Raised when a request to the store server is malformed.
    """
    pass


class StoreServer:
    """Serves a record store to WebSocket clients.

    Requests from all clients go to the same store, so they are ordered by the
    store operation queue.

    :param store: :class:`ndstore.filestore.FileRecordStore`, the store to serve.
    :param host: ``str``, the hostname to bind to.
    :param port: ``int``, the port to listen on. Use ``0`` to pick a free port.
    """
    def __init__(self, store, host='localhost', port=6480):
        self.store = store
        self.host = host
        self.port = port
        self.server = None
        self.actions = {
            'append': self._append,
            'all': self._all,
            'find': self._find,
            'first': self._first,
            'update': self._update,
            'delete': self._delete,
            'clear': self._clear,
            'count': self._count,
            'size': self._size,
        }

    async def dispatch(self, message):
        """Processes one request message and returns the response message.

        :param message: ``str``, the JSON request.

        Returns the JSON response as ``str``. Errors are reported in the response,
        never raised.
        """
        try:
            request = json.loads(message)
            if not isinstance(request, dict):
                raise RequestException('request must be a JSON object')
            action = self.actions.get(request.get('action'))
            if action is None:
                raise RequestException('unknown action: %s' % request.get('action'))
            result = await action(request)
        except (ValueError, RequestException, RecordStoreException) as e:
            log.debug('[Server:%s:%d] request failed: %s', self.host, self.port, e)
            return json.dumps({'ok': False, 'error': str(e)})
        # pylint: disable=broad-except
        # Unexpected errors are reported to the client as well
        except Exception as e:
            log.exception(e)
            return json.dumps({'ok': False, 'error': str(e)})
        return json.dumps({'ok': True, 'result': result}, ensure_ascii=False)

    async def _on_client_connection(self, websocket, path=None):
        log.debug('[Server:%s:%d] client connected', self.host, self.port)
        try:
            async for message in websocket:
                await websocket.send(await self.dispatch(message))
        except websockets.ConnectionClosed:
            log.debug('[Server:%s:%d] connection closed', self.host, self.port)

    async def start(self):
        """Starts listening for clients.
        """
        self.server = await websockets.serve(self._on_client_connection, self.host, self.port)
        if not self.port and self.server.sockets:
            self.port = self.server.sockets[0].getsockname()[1]
        log.info('Store server for %s listening on %s:%d', self.store.path, self.host, self.port)

    async def stop(self):
        """Closes all client connections, shuts down the server and waits for the
        pending store operations.
        """
        if self.server is not None:
            self.server.close()
            await self.server.wait_closed()
            self.server = None
        await self.store.close()
        log.info('Store server stopped')

    async def serve_forever(self):
        """Starts the server and waits until it is stopped.
        """
        await self.start()
        await self.server.wait_closed()

    @staticmethod
    def _param(request, name):
        if name not in request:
            raise RequestException('missing parameter: %s' % name)
        return request[name]

    @staticmethod
    def _where(request, required=False):
        criteria = StoreServer._param(request, 'where') if required else request.get('where')
        if criteria is not None and not isinstance(criteria, dict):
            raise RequestException('"where" must be a JSON object')
        return where(criteria)

    async def _append(self, request):
        records = self._param(request, 'records')
        if not isinstance(records, list):
            raise RequestException('"records" must be a list')
        await self.store.append(records)
        return len(records)

    async def _all(self, request):
        return await self.store.get_all(request.get('wait', True))

    async def _find(self, request):
        return await self.store.find_all(self._where(request), request.get('wait', True))

    async def _first(self, request):
        return await self.store.find_one(self._where(request), request.get('wait', True))

    async def _update(self, request):
        record = self._param(request, 'record')
        return await self.store.update_records(self._where(request, required=True), record)

    async def _delete(self, request):
        return await self.store.delete_records(self._where(request, required=True))

    async def _clear(self, request):
        await self.store.delete_all_records()

    async def _count(self, request):
        return await self.store.count(request.get('wait', True))

    async def _size(self, request):
        return await self.store.size_on_disk()


class StoreClient:
    """Client connection to a :class:`StoreServer`.

    Use it as an asynchronous context manager:

    .. code-block:: python

        async with StoreClient('localhost', 6480) as client:
            await client.call('append', records=[{'id': 1}])
            print(await client.call('count'))

    :param host: ``str``, the server hostname.
    :param port: ``int``, the server port.
    :param secure: ``bool``, use a secure (``wss://``) connection.
    """
    def __init__(self, host='localhost', port=6480, secure=False):
        self.host = host
        self.port = port
        self.secure = secure
        self.websocket = None
        self._lock = asyncio.Lock()

    def _get_ws_url(self):
        url = 'wss://' if self.secure else 'ws://'
        url += self.host
        if self.port:
            url += ':' + str(self.port)
        return url

    async def connect(self):
        """Connect to the server.
        """
        self.websocket = await websockets.connect(self._get_ws_url())
        log.debug('[%s:%s]: connected', self.host, self.port)

    async def close(self):
        """Close the connection to the server.
        """
        if self.websocket is not None:
            await self.websocket.close()
            self.websocket = None

    async def call(self, action, **params):
        """Sends a request to the server and waits for the response.

        :param action: ``str``, the action name.
        :param params: the parameters of the action.

        Returns the result of the action. Raises
        :class:`ndstore.storeapi.RecordStoreException` if the server reports an
        error.
        """
        if self.websocket is None:
            raise RecordStoreException('client is not connected')
        request = dict(params, action=action)
        async with self._lock:
            await self.websocket.send(json.dumps(request, ensure_ascii=False))
            response = json.loads(await self.websocket.recv())
        if not response.get('ok'):
            raise RecordStoreException(response.get('error'))
        return response.get('result')

    async def __aenter__(self):
        await self.connect()
        return self

    async def __aexit__(self, *args):
        await self.close()
