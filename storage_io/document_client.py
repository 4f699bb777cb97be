from typing import Any, Generic, Optional, Type, TypeVar

from bson.errors import InvalidDocument
from loguru import logger
from pymongo.collection import Collection
from pymongo.errors import ConnectionFailure, PyMongoError
from pymongo.results import UpdateResult

from connection_registry import ConnectionRegistry, get_default_registry
from storage_config import StorageConfig
from storage_errors import InvalidArgumentError, StorageConnectionError, StorageError, StoreError

T = TypeVar("T")

# pymongo rejects some documents client side without raising a PyMongoError
DRIVER_ERRORS = (PyMongoError, InvalidDocument, ValueError, TypeError)


class DocumentClient(Generic[T]):
    """
    Stores, loads and checks objects of one type in one MongoDB collection.

    document_type must implement pack() and the classmethod
    unpack(record, **options) (see storable.Storable). Every record is
    addressed by the value of config.key_attr.
    """

    def __init__(self, document_type: Type[T], config: StorageConfig, registry: Optional[ConnectionRegistry] = None):
        self.document_type = document_type
        self.config = config
        self.registry = registry if registry is not None else get_default_registry()

    @property
    def key_attr(self) -> str:
        return self.config.key_attr

    @property
    def collection(self) -> Collection:
        return self.registry.get_collection(self.config.identity)

    def _check_key(self, key_value: Any):
        if key_value is None:
            raise InvalidArgumentError(f"undefined value for key attr {self.key_attr}")

    def _key_filter(self, key_value: Any) -> dict:
        # $eq so a mapping key value is matched literally, never read as an operator
        return {self.key_attr: {"$eq": key_value}}

    def store(self, obj: T) -> UpdateResult:
        """
        Upserts obj under its key value, replacing any record already stored
        with that key. Returns the driver's UpdateResult.
        """
        key_value = getattr(obj, self.key_attr, None)
        self._check_key(key_value)

        record = dict(obj.pack())
        record[self.key_attr] = key_value

        # resolved on every call
        collection = self.collection
        try:
            result = collection.replace_one(self._key_filter(key_value), record, upsert=True)
        except DRIVER_ERRORS as e:
            logger.error(f"Error storing {self.key_attr}={key_value!r} in {self.config.identity.namespace}: {e}")
            raise StoreError(f"Error storing {self.key_attr}={key_value!r}: {e}") from e

        logger.debug(
            f"Stored {self.key_attr}={key_value!r} in {self.config.identity.namespace} "
            f"(upserted_id={result.upserted_id}, matched={result.matched_count})"
        )
        return result

    def _find_one(self, key_value: Any, projection: dict) -> Optional[dict]:
        self._check_key(key_value)
        collection = self.collection
        try:
            return collection.find_one(self._key_filter(key_value), projection)
        except ConnectionFailure as e:
            logger.error(f"Cannot reach {self.config.identity.namespace}: {e}")
            raise StorageConnectionError(f"Error reading {self.key_attr}={key_value!r}: {e}") from e
        except DRIVER_ERRORS as e:
            logger.error(f"Error reading {self.key_attr}={key_value!r} from {self.config.identity.namespace}: {e}")
            raise StorageError(f"Error reading {self.key_attr}={key_value!r}: {e}") from e

    def load(self, key_value: Any, **options: Any) -> Optional[T]:
        """
        Returns the object stored under key_value, or None if there is none.
        options are forwarded to unpack().
        """
        record = self._find_one(key_value, {"_id": False})
        if record is None:
            logger.debug(f"No record for {self.key_attr}={key_value!r} in {self.config.identity.namespace}")
            return None
        return self.document_type.unpack(record, **options)

    def exists(self, key_value: Any) -> bool:
        found = self._find_one(key_value, {"_id": True}) is not None
        logger.debug(f"{self.key_attr}={key_value!r} exists in {self.config.identity.namespace}: {found}")
        return found
