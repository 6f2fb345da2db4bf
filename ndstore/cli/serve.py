"""
-----------------
ndstore.cli.serve
-----------------

Runs the store WebSocket server.
"""
import asyncio
import signal
from logging import getLogger

from ndstore.comm import StoreServer
from ndstore.config import create_store


log = getLogger(__name__)


def get_parser(subparsers):
    """Configures the subparser for the ``serve`` command.

    :param argparse.ArgumentParser subparser: subparser for commands.

    Returns :class:`argparse.ArgumentParser` configured for the ``serve`` command.
    """
    parser = subparsers.add_parser('serve', help='Serve the store over WebSocket')

    parser.add_argument('-H', '--host', dest='server_host', default=None,
                        help='Hostname to bind to')
    parser.add_argument('-P', '--port', dest='server_port', default=None, type=int,
                        help='Listen on port')

    return parser


def run_server(args, config):
    """Runs the store server until it receives SIGINT or SIGTERM.

    :param argparse.Namespace args: the parsed arguments passed to the CLI.
    :param ndstore.config.StoreConfig config: the store configuration.
    """
    config.merge(host=args.server_host, port=args.server_port)
    server = StoreServer(store=create_store(config), host=config.host, port=config.port)
    asyncio.run(_serve(server))
    return 0


async def _serve(server):
    loop = asyncio.get_running_loop()
    stop = asyncio.Event()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop.set)
        except NotImplementedError:
            log.debug('Signal handlers are not supported on this platform')
    await server.start()
    try:
        await stop.wait()
        log.info('Server is shutting down.')
    finally:
        await server.stop()
