import os
from dataclasses import dataclass

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_HOST = "localhost"
DEFAULT_PORT = 27017
DEFAULT_CONNECT_TIMEOUT_MS = 10000
DEFAULT_SOCKET_TIMEOUT_MS = 30000


@dataclass(frozen=True)
class ConnectionIdentity:
    """Everything needed to open a collection handle. Used as the registry cache key."""
    host: str
    port: int
    database: str
    collection: str
    connect_timeout_ms: int = DEFAULT_CONNECT_TIMEOUT_MS
    socket_timeout_ms: int = DEFAULT_SOCKET_TIMEOUT_MS

    @property
    def namespace(self) -> str:
        return f"{self.database}.{self.collection}"


class StorageConfig(BaseModel):
    """
    Parameters of a MongoDB-backed storage.

    host and port can be overridden through MONGO_HOST / MONGO_PORT;
    database and collection have no defaults.
    """
    model_config = ConfigDict(frozen=True)

    key_attr: str = Field(min_length=1)
    # env defaults are validated like explicit values, so MONGO_PORT="27018" becomes an int
    host: str = Field(default_factory=lambda: os.getenv("MONGO_HOST", DEFAULT_HOST), min_length=1, validate_default=True)
    port: int = Field(default_factory=lambda: os.getenv("MONGO_PORT", DEFAULT_PORT), ge=1, le=65535, validate_default=True)
    database: str = Field(min_length=1)
    collection: str = Field(min_length=1)
    # time to wait for a new connection to a server
    connect_timeout_ms: int = Field(default=DEFAULT_CONNECT_TIMEOUT_MS, gt=0)
    # time to wait for a reply before raising a network error
    socket_timeout_ms: int = Field(default=DEFAULT_SOCKET_TIMEOUT_MS, gt=0)

    @property
    def identity(self) -> ConnectionIdentity:
        return ConnectionIdentity(
            host=self.host,
            port=self.port,
            database=self.database,
            collection=self.collection,
            connect_timeout_ms=self.connect_timeout_ms,
            socket_timeout_ms=self.socket_timeout_ms,
        )
