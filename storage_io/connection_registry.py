import threading
from typing import Any, Callable, Dict, Optional, Tuple

from loguru import logger
from pymongo import MongoClient
from pymongo.collection import Collection
from pymongo.errors import PyMongoError

from storage_config import ConnectionIdentity
from storage_errors import StorageConnectionError

# (host, port, connect_timeout_ms, socket_timeout_ms)
ClientKey = Tuple[str, int, int, int]


class ConnectionRegistry:
    """
    Hands out collection handles, opening each one at most once.

    Handles are cached on the full ConnectionIdentity, so two configurations
    that only share database/collection names never share a handle. Driver
    clients are cached on host/port/timeouts and reused across collections.
    """

    def __init__(self, client_factory: Callable[..., Any] = MongoClient):
        self._client_factory = client_factory
        self._clients: Dict[ClientKey, Any] = {}
        self._collections: Dict[ConnectionIdentity, Collection] = {}
        self._lock = threading.Lock()

    def get_collection(self, identity: ConnectionIdentity) -> Collection:
        collection = self._collections.get(identity)
        if collection is not None:
            return collection

        with self._lock:
            # another thread may have populated it while we waited
            collection = self._collections.get(identity)
            if collection is not None:
                return collection
            try:
                client = self._get_client(identity)
                collection = client[identity.database][identity.collection]
            except (PyMongoError, TypeError, ValueError) as e:
                logger.error(f"Cannot open collection {identity.namespace} on {identity.host}:{identity.port}: {e}")
                raise StorageConnectionError(
                    f"Error getting collection {identity.namespace} on {identity.host}:{identity.port}: {e}"
                ) from e
            self._collections[identity] = collection
            logger.info(f"Opened collection handle {identity.namespace} on {identity.host}:{identity.port}")
            return collection

    def _get_client(self, identity: ConnectionIdentity):
        key = (identity.host, identity.port, identity.connect_timeout_ms, identity.socket_timeout_ms)
        client = self._clients.get(key)
        if client is None:
            client = self._client_factory(
                host=identity.host,
                port=identity.port,
                connectTimeoutMS=identity.connect_timeout_ms,
                socketTimeoutMS=identity.socket_timeout_ms,
                w=1,
            )
            self._clients[key] = client
            logger.info(f"Created MongoDB client for {identity.host}:{identity.port}")
        return client

    def __len__(self) -> int:
        return len(self._collections)

    def close(self):
        with self._lock:
            for client in self._clients.values():
                client.close()
            self._clients.clear()
            self._collections.clear()


_default_registry: Optional[ConnectionRegistry] = None
_default_registry_lock = threading.Lock()


def get_default_registry() -> ConnectionRegistry:
    """Process-wide registry shared by every client built without an explicit one."""
    global _default_registry
    with _default_registry_lock:
        if _default_registry is None:
            _default_registry = ConnectionRegistry()
        return _default_registry
