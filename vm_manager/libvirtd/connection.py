from contextlib import contextmanager
import logging
import threading
from typing import TYPE_CHECKING

import libvirt

from ..config import LibvirtConfiguration

if TYPE_CHECKING:
    from .connection_manager import ConnectionManager

logger = logging.getLogger(__name__)


def format_libvirt_version(version: int) -> str:
    return f"{version // 1000000}.{version // 1000 % 1000}.{version % 1000}"


class Connection:
    """
    Owns the single native libvirt handle for one URI.

    The handle is opened on first use and replaced whenever it stops answering. Every
    caller goes through `acquire()`, which holds `lock` for the duration of the block, so
    concurrent first use opens exactly one native connection and daemon calls made through
    the handle are serialized.
    """

    KEEPALIVE_INTERVAL = 5

    def __init__(self, manager: "ConnectionManager", configuration: LibvirtConfiguration):
        self.manager = manager
        self.configuration = configuration
        self.lock = threading.RLock()
        self._connection = None

    @property
    def uri(self) -> str:
        return self.configuration.uri

    @contextmanager
    def acquire(self):
        with self.lock:
            yield self._live_connection()

    def close(self):
        with self.lock:
            if self._connection is None:
                return

            connection, self._connection = self._connection, None
            try:
                connection.close()
            except libvirt.libvirtError:
                logger.error("Failed to close libvirt connection to %r", self.uri, exc_info=True)
            else:
                logger.info("Closed libvirt connection to %r", self.uri)

    def _live_connection(self):
        if self._connection is not None:
            if self._is_alive(self._connection):
                return self._connection

            logger.warning("Libvirt connection to %r is no longer alive, reconnecting", self.uri)
            self._discard()

        self._open()
        return self._connection

    def _is_alive(self, connection) -> bool:
        # isAlive itself can raise once a remote daemon went away, that means a dead connection too
        try:
            return bool(connection.isAlive()) and isinstance(connection.listAllDomains(), list)
        except libvirt.libvirtError as e:
            logger.debug("Libvirt liveness check for %r failed: %s", self.uri, e)
            return False

    def _open(self):
        logger.info("Connecting to libvirt at %r", self.uri)
        connection = self.manager.open(self.uri)

        try:
            connection.setKeepAlive(
                self.KEEPALIVE_INTERVAL, max(1, self.configuration.timeout // self.KEEPALIVE_INTERVAL),
            )
        except libvirt.libvirtError as e:
            # Not every driver (e.g. test:///) speaks the keepalive protocol
            logger.debug("Keepalive is not available for %r: %s", self.uri, e)

        self._connection = connection
        self._log_connection_details(connection)

    def _discard(self):
        connection, self._connection = self._connection, None
        try:
            connection.close()
        except libvirt.libvirtError as e:
            logger.debug("Ignoring failure to close dead libvirt connection to %r: %s", self.uri, e)

    def _log_connection_details(self, connection):
        try:
            logger.info(
                "Connected to libvirt at %r: hypervisor %s, libvirt %s, host %s",
                self.uri,
                connection.getType(),
                format_libvirt_version(connection.getLibVersion()),
                connection.getHostname(),
            )
        except libvirt.libvirtError as e:
            logger.debug("Unable to query libvirt connection details for %r: %s", self.uri, e)
