from typing import Any, Callable, Optional, Type

from connection_registry import ConnectionRegistry
from document_client import DocumentClient
from storage_config import DEFAULT_CONNECT_TIMEOUT_MS, DEFAULT_SOCKET_TIMEOUT_MS, StorageConfig

REQUIRED_METHODS = ("pack", "unpack")


def mongo_storage(
    key_attr: str,
    database: str,
    collection: str,
    host: Optional[str] = None,
    port: Optional[int] = None,
    connect_timeout_ms: int = DEFAULT_CONNECT_TIMEOUT_MS,
    socket_timeout_ms: int = DEFAULT_SOCKET_TIMEOUT_MS,
    registry: Optional[ConnectionRegistry] = None,
) -> Callable[[Type], Type]:
    """
    Class decorator giving a class store(), load() and exists() backed by a
    MongoDB collection.

        @mongo_storage(key_attr="doc_id", database="TESTDB", collection="docs")
        @dataclass
        class MyDoc(Packable):
            doc_id: str
            title: str = ""

        MyDoc(doc_id="foo12", title="Foo").store()
        if MyDoc.exists("foo12"):
            doc = MyDoc.load("foo12")

    The class has to provide pack() and unpack() (Packable does).
    """
    params: dict = dict(
        key_attr=key_attr,
        database=database,
        collection=collection,
        connect_timeout_ms=connect_timeout_ms,
        socket_timeout_ms=socket_timeout_ms,
    )
    # leave unset so the config picks up its own defaults
    if host is not None:
        params["host"] = host
    if port is not None:
        params["port"] = port
    config = StorageConfig(**params)

    def decorate(cls: Type) -> Type:
        missing = [name for name in REQUIRED_METHODS if not callable(getattr(cls, name, None))]
        if missing:
            raise TypeError(f"{cls.__name__} must implement {', '.join(missing)} to use mongo_storage")

        client = DocumentClient(cls, config, registry)

        def store(self):
            return client.store(self)

        def load(klass, key_value: Any, **options: Any):
            return client.load(key_value, **options)

        def exists(klass, key_value: Any) -> bool:
            return client.exists(key_value)

        cls.storage_client = client
        cls.store = store
        cls.load = classmethod(load)
        cls.exists = classmethod(exists)
        return cls

    return decorate
