import unittest
from dataclasses import dataclass, field
from typing import Any, Dict, List

from pydantic import ValidationError

from connection_registry import ConnectionRegistry
from document_client import DocumentClient
from mongo_fakes import FakeClientFactory
from mongo_storage import mongo_storage
from storable import Packable
from storage_errors import InvalidArgumentError


class TestMongoStorage(unittest.TestCase):
    def setUp(self):
        self.factory = FakeClientFactory()
        self.registry = ConnectionRegistry(client_factory=self.factory)

        @mongo_storage(
            key_attr="doc_id",
            host="my-mongodb-host.com",
            port=27100,
            database="TESTDB",
            collection="my-collection",
            registry=self.registry,
        )
        @dataclass
        class MyDoc(Packable):
            doc_id: str
            title: str = ""
            tags: List[str] = field(default_factory=list)
            authors: Dict[str, Any] = field(default_factory=dict)

        self.MyDoc = MyDoc

    def tearDown(self):
        self.registry.close()

    def test_store_load_exists(self):
        MyDoc = self.MyDoc
        doc = MyDoc(doc_id="foo12", title="Foo", authors={"bsmith": {"name": "Bob Smith"}})

        self.assertFalse(MyDoc.exists("foo12"))
        doc.store()
        self.assertTrue(MyDoc.exists("foo12"))

        doc2 = MyDoc.load("foo12")
        self.assertIsInstance(doc2, MyDoc)
        self.assertEqual(doc2.authors["bsmith"]["name"], "Bob Smith")
        self.assertIsNone(MyDoc.load("missing"))

    def test_load_options(self):
        self.MyDoc(doc_id="foo12", title="Foo").store()
        self.assertEqual(self.MyDoc.load("foo12", inject={"title": "Bar"}).title, "Bar")

    def test_storage_client(self):
        client = self.MyDoc.storage_client
        self.assertIsInstance(client, DocumentClient)
        self.assertEqual(client.config.key_attr, "doc_id")
        self.assertEqual(client.config.host, "my-mongodb-host.com")
        self.assertEqual(client.config.port, 27100)
        self.assertIs(client.registry, self.registry)

    def test_connection_is_lazy(self):
        self.assertEqual(self.factory.calls, 0)
        self.MyDoc.exists("foo12")
        self.assertEqual(self.factory.calls, 1)

    def test_null_key(self):
        with self.assertRaises(InvalidArgumentError):
            self.MyDoc.load(None)
        with self.assertRaises(InvalidArgumentError):
            self.MyDoc(doc_id=None).store()

    def test_requires_pack_and_unpack(self):
        with self.assertRaises(TypeError) as ctx:
            @mongo_storage(key_attr="doc_id", database="TESTDB", collection="docs", registry=self.registry)
            class Plain:
                def pack(self):
                    return {}

        self.assertIn("unpack", str(ctx.exception))

    def test_invalid_parameters(self):
        with self.assertRaises(ValidationError):
            mongo_storage(key_attr="doc_id", database="", collection="docs")
        with self.assertRaises(ValidationError):
            mongo_storage(key_attr="doc_id", database="TESTDB", collection="docs", connect_timeout_ms=0)


if __name__ == "__main__":
    unittest.main()
