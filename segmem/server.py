"""The listening side of the memory module."""

from __future__ import annotations

import logging
import socket
import threading

from .communication import (
    CommunicationError,
    Connection,
    HandshakeCode,
    client_wait,
    server_start,
)
from .handlers import serve_cpu_fs, serve_kernel
from .memory import Memory

logger = logging.getLogger(__name__)

_MODULES = (HandshakeCode.KERNEL, HandshakeCode.CPU, HandshakeCode.FS)


class MemoryServer:
    """Accepts one kernel, one CPU and one file system, each served on its own thread."""

    def __init__(self, port, memory: Memory) -> None:
        self.port = port
        self.memory = memory
        self.accepting = True
        self.end_requested = False
        self.address: tuple | None = None
        self._connected = {module: False for module in _MODULES}
        self._lock = threading.Lock()
        self._socket: socket.socket | None = None
        self._listener: threading.Thread | None = None
        self._clients: list[threading.Thread] = []

    def start(self) -> None:
        """Open the listening socket and start accepting modules in the background."""
        try:
            self._socket = server_start(self.port)
        except CommunicationError:
            self.accepting = False
            self.end_requested = True
            raise
        self.address = self._socket.getsockname()
        self._listener = threading.Thread(
            target=self._listen, name="memory-server", daemon=True
        )
        self._listener.start()

    def _listen(self) -> None:
        while self.accepting and not self.all_connected():
            connection = client_wait(self._socket)
            if connection is None:
                continue
            try:
                module = connection.accept_handshake(HandshakeCode.MEMORY)
            except CommunicationError:
                connection.close()
                continue
            if module is None or not self.register_module(module):
                connection.close()
                continue
            thread = threading.Thread(
                target=self.handle_client,
                args=(connection, HandshakeCode(module)),
                daemon=True,
            )
            self._clients.append(thread)
            thread.start()
        if self.all_connected():
            self.accepting = False
            logger.info("Thread Memory Server: every module is connected")

    def stop(self) -> None:
        """Stop accepting and close the listening socket."""
        self.accepting = False
        if self._listener is not None:
            self._listener.join()
            self._listener = None
        if self._socket is not None:
            self._socket.close()
            self._socket = None
        logger.info("Thread Memory Server: finished")

    def register_module(self, module) -> bool:
        """Mark ``module`` connected; False if it is not accepted or already connected."""
        try:
            code = HandshakeCode(module)
        except ValueError:
            return False
        with self._lock:
            if code not in self._connected or self._connected[code]:
                return False
            self._connected[code] = True
            return True

    def all_connected(self) -> bool:
        """Return whether the kernel, CPU and file system are all connected."""
        with self._lock:
            return all(self._connected.values())

    def handle_client(self, connection: Connection, module) -> None:
        """Serve one connected module until it leaves, then close its connection."""
        with connection:
            if module == HandshakeCode.KERNEL:
                logger.info("Thread Memory Client: Kernel connected")
                serve_kernel(connection, self.memory)
                logger.info("Thread Memory Client: Kernel disconnecting")
                self.end_requested = True
            elif module == HandshakeCode.CPU:
                logger.info("Thread Memory Client: CPU connected")
                serve_cpu_fs(connection, self.memory, "CPU")
                logger.info("Thread Memory Client: CPU disconnecting")
            elif module == HandshakeCode.FS:
                logger.info("Thread Memory Client: File System connected")
                serve_cpu_fs(connection, self.memory, "Filesystem")
                logger.info("Thread Memory Client: File System disconnecting")
            else:
                logger.warning("Thread Memory Client: unknown client")