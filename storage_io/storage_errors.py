class StorageError(RuntimeError):
    """Base class for every failure raised by the storage layer."""


class StorageConnectionError(StorageError, ConnectionError):
    """The store could not be reached, or the database/collection could not be resolved."""


class StoreError(StorageError):
    """A write failed after the collection handle was obtained."""


class InvalidArgumentError(StorageError, ValueError):
    """A required key value was missing."""


__all__ = [
    "InvalidArgumentError",
    "StorageConnectionError",
    "StorageError",
    "StoreError",
]
