"""MongoDB client setup and connection lifecycle events."""

import logging
from collections.abc import Callable
from typing import Any, Literal

from pymongo import AsyncMongoClient, monitoring
from pymongo.asynchronous.collection import AsyncCollection

from task_manager.config import Settings


logger = logging.getLogger(__name__)

ConnectionStatus = Literal["connecting", "connected", "disconnected", "error"]
ConnectionEvent = Literal["connected", "error", "disconnected"]


class ConnectionMonitor(monitoring.TopologyListener, monitoring.ServerHeartbeatListener):
    """Turns driver monitoring events into connected/error/disconnected notifications.

    Callbacks registered with ``on`` run on the driver's monitoring task, so
    they must be quick and must not raise. ``status`` always holds the most
    recent state.
    """

    def __init__(self) -> None:
        self.status: ConnectionStatus = "connecting"
        self._callbacks: dict[ConnectionEvent, list[Callable[..., None]]] = {
            "connected": [],
            "error": [],
            "disconnected": [],
        }

    def on(self, event: ConnectionEvent, callback: Callable[..., None]) -> None:
        """Register a callback for a lifecycle event."""
        self._callbacks[event].append(callback)

    def _emit(self, event: ConnectionEvent, *args: Any) -> None:
        for callback in self._callbacks[event]:
            callback(*args)

    # TopologyListener

    def opened(self, event: monitoring.TopologyOpenedEvent) -> None:
        self.status = "connecting"

    def description_changed(self, event: monitoring.TopologyDescriptionChangedEvent) -> None:
        was_readable = event.previous_description.has_readable_server()
        is_readable = event.new_description.has_readable_server()
        if is_readable and not was_readable:
            self.status = "connected"
            self._emit("connected")
        elif was_readable and not is_readable:
            self.status = "disconnected"
            self._emit("disconnected")

    def closed(self, event: monitoring.TopologyClosedEvent) -> None:
        if self.status != "disconnected":
            self.status = "disconnected"
            self._emit("disconnected")

    # ServerHeartbeatListener

    def started(self, event: monitoring.ServerHeartbeatStartedEvent) -> None:
        pass

    def succeeded(self, event: monitoring.ServerHeartbeatSucceededEvent) -> None:
        pass

    def failed(self, event: monitoring.ServerHeartbeatFailedEvent) -> None:
        # Heartbeats keep failing while the server is down; report once per outage.
        if self.status != "error":
            self.status = "error"
            self._emit("error", event.reply)


def create_monitor() -> ConnectionMonitor:
    """Create a connection monitor that logs lifecycle events."""
    monitor = ConnectionMonitor()
    monitor.on("connected", lambda: logger.info("Connected to MongoDB"))
    monitor.on("error", lambda err: logger.error("Error connecting to MongoDB: %s", err))
    monitor.on("disconnected", lambda: logger.info("Disconnected from MongoDB"))
    return monitor


def create_client(settings: Settings, monitor: ConnectionMonitor) -> AsyncMongoClient:
    """Create the process-wide MongoDB client.

    The driver connects lazily; connection outcome is reported through the
    monitor rather than by raising here.
    """
    return AsyncMongoClient(
        settings.mongodb_url,
        tz_aware=True,
        serverSelectionTimeoutMS=settings.mongodb_server_selection_timeout_ms,
        event_listeners=[monitor],
    )


def get_collection(client: AsyncMongoClient, settings: Settings) -> AsyncCollection:
    """Return the task collection, using the database named in the URL if any."""
    database = client.get_default_database(default=settings.mongodb_database)
    return database[settings.mongodb_collection]


async def close_client(client: AsyncMongoClient) -> None:
    """Close database connections."""
    await client.close()
