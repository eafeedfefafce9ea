"""Broadcast channel between the background process and its observers.

Every observer holds a :class:`Port`. The channel keeps a registry of open
ports; broadcasting posts an event to each of them. Scheduler jobs fire on
worker threads, so the registry and every port queue are thread-safe.
"""

import logging
import queue
import threading
from typing import Callable, Optional

from .messages import Event

logger = logging.getLogger(__name__)

Listener = Callable[[Event], None]


class Port:
    """One observer's end of an :class:`EventChannel`.

    Events posted to a port are queued in order. An optional listener is
    called synchronously for every posted event as well.
    """

    def __init__(self, channel: "EventChannel", listener: Optional[Listener] = None):
        self._channel = channel
        self._queue: "queue.Queue[Event]" = queue.Queue()
        self.listener = listener
        self.closed = False

    def post(self, event: Event) -> None:
        """Deliver an event to this port only."""
        if self.closed:
            logger.debug(f"Dropping {event.TAG} for closed port")
            return
        self._queue.put(event)
        if self.listener is not None:
            try:
                self.listener(event)
            except Exception:
                logger.exception(f"Listener failed on {event.TAG} event")

    def get(self, timeout: Optional[float] = None) -> Optional[Event]:
        """Wait for the next event.

        Args:
            timeout: Seconds to wait, None to block

        Returns:
            The event, or None on timeout
        """
        try:
            return self._queue.get(timeout=timeout)
        except queue.Empty:
            return None

    def drain(self) -> list[Event]:
        """Return all queued events without waiting."""
        events: list[Event] = []
        while True:
            try:
                events.append(self._queue.get_nowait())
            except queue.Empty:
                return events

    def close(self) -> None:
        """Unsubscribe this port from its channel."""
        if not self.closed:
            self.closed = True
            self._channel.disconnect(self)


class EventChannel:
    """Registry of observer ports with broadcast delivery."""

    def __init__(self) -> None:
        self._ports: list[Port] = []
        self._lock = threading.Lock()

    def connect(self, listener: Optional[Listener] = None) -> Port:
        """Open a new port on this channel.

        Args:
            listener: Optional callback invoked for every event on the port

        Returns:
            The new Port
        """
        port = Port(self, listener)
        with self._lock:
            self._ports.append(port)
        logger.debug(f"Port connected ({self.port_count} open)")
        return port

    def disconnect(self, port: Port) -> None:
        """Remove a port from the registry."""
        with self._lock:
            if port in self._ports:
                self._ports.remove(port)
        port.closed = True

    @property
    def port_count(self) -> int:
        with self._lock:
            return len(self._ports)

    def broadcast(self, event: Event) -> None:
        """Post an event to every open port."""
        with self._lock:
            ports = list(self._ports)
        logger.debug(f"Broadcasting {event.TAG} to {len(ports)} port(s)")
        for port in ports:
            port.post(event)
