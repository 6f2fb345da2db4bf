"""
------------------
ndstore.cli.follow
------------------

Prints the records appended to the store file, as they arrive.
"""
import signal
import threading
from logging import getLogger

from watchdog.observers import Observer

from ndstore.model import RecordSerializer
from ndstore.watcher import FollowDaemon, RecordFollower


log = getLogger(__name__)


_POLL_INTERVAL = 0.5


def get_parser(subparsers):
    """Configures the subparser for the ``follow`` command.

    :param argparse.ArgumentParser subparser: subparser for commands.

    Returns :class:`argparse.ArgumentParser` configured for the ``follow`` command.
    """
    parser = subparsers.add_parser('follow', help='Print records as they are appended')

    parser.add_argument('--notify-reset', dest='notify_reset', action='store_true',
                        help='Print a marker line when the store file is rewritten or cleared.')

    return parser


def run_follow(args, config):
    """Follows the store file until interrupted.

    :param argparse.Namespace args: the parsed arguments passed to the CLI.
    :param ndstore.config.StoreConfig config: the store configuration.
    """
    serializer = RecordSerializer(encoding=config.encoding)

    def on_record(record):
        print(serializer.serialize(record), flush=True)

    def on_reset(path):
        log.info('%s was rewritten', path)
        if args.notify_reset:
            print('--- %s rewritten ---' % path, flush=True)

    follower = RecordFollower(config.path, callback=on_record, encoding=config.encoding,
                              on_reset=on_reset)
    daemon = FollowDaemon(observer=Observer(), follower=follower)
    stopped = threading.Event()

    def stop_follower(sig, frame):
        """Signal handler that stops the follower.
        """
        stopped.set()

    signal.signal(signal.SIGINT, stop_follower)
    signal.signal(signal.SIGTERM, stop_follower)

    daemon.start()
    try:
        while not stopped.wait(_POLL_INTERVAL):
            pass
    finally:
        daemon.stop()
    return 0
