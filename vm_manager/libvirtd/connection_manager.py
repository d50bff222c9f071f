import logging
import threading

import libvirt

from ..config import LibvirtConfiguration
from ..error import ConnectionFailedError
from .connection import Connection

logger = logging.getLogger(__name__)


class ConnectionManager:
    def __init__(self):
        self.connections: dict[str, Connection] = {}
        self._lock = threading.Lock()

        libvirt.registerErrorHandler(self._libvirt_error_handler, None)

    def create(self, configuration: LibvirtConfiguration) -> Connection:
        # One native connection per URI for every manager sharing this ConnectionManager
        with self._lock:
            if configuration.uri not in self.connections:
                self.connections[configuration.uri] = Connection(self, configuration)

            return self.connections[configuration.uri]

    def open(self, uri: str):
        try:
            connection = libvirt.open(uri)
        except libvirt.libvirtError as e:
            logger.error("Failed to connect to libvirt at %r: %s", uri, e)
            raise ConnectionFailedError(f"Failed to open libvirt connection to {uri!r}: {e}")

        if connection is None:
            raise ConnectionFailedError(f"Failed to open libvirt connection to {uri!r}")

        return connection

    def close(self):
        for connection in self.connections.values():
            connection.close()

    def _libvirt_error_handler(self, _, error):
        # libvirt prints every error to stderr unless a handler is registered, errors reach us as exceptions
        pass
