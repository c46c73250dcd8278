"""Graceful shutdown signal handling."""

import signal
import logging
from threading import Event
from typing import Optional

logger = logging.getLogger(__name__)

SHUTDOWN_SIGNALS = (signal.SIGINT, signal.SIGTERM)


def install_signal_handlers(shutdown_event: Optional[Event] = None) -> Event:
    """
    Set shutdown_event on SIGINT or SIGTERM.

    A second signal while shutdown is already in progress restores the
    default handler, so a third one kills the process outright.

    Returns:
        The event that will be set when shutdown is requested.
    """
    event = shutdown_event or Event()

    def handler(signum, frame):
        sig_name = signal.Signals(signum).name
        if event.is_set():
            logger.warning(f"Received {sig_name} again, next one exits immediately")
            signal.signal(signum, signal.SIG_DFL)
            return
        logger.info(f"Received {sig_name}, initiating shutdown...")
        event.set()

    for sig in SHUTDOWN_SIGNALS:
        signal.signal(sig, handler)

    logger.debug("Signal handlers installed for SIGINT and SIGTERM")
    return event
