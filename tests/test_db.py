"""Tests for TransactionDB error and deadline handling, using a mocked collection."""
import asyncio
import unittest
from unittest.mock import AsyncMock, MagicMock

from pymongo.errors import PyMongoError, ConnectionFailure

from transaction_reports.data.db import TransactionDB
from transaction_reports.errors import StoreError, StoreTimeoutError


class TestTransactionDB(unittest.IsolatedAsyncioTestCase):

    def setUp(self):
        self.collection = MagicMock()
        self.db = TransactionDB(self.collection, timeout_seconds=0.05)

    async def test_count(self):
        self.collection.count_documents = AsyncMock(return_value=42)
        self.assertEqual(await self.db.count({"sold": True}), 42)
        self.collection.count_documents.assert_awaited_once_with({"sold": True})

    async def test_find_page_sorts_skips_and_limits(self):
        cursor = self.collection.find.return_value
        cursor.sort.return_value = cursor
        cursor.skip.return_value = cursor
        cursor.limit.return_value = cursor
        cursor.to_list = AsyncMock(return_value=[{"_id": 11}])

        rows = await self.db.find_page({}, skip=10, limit=10)

        self.assertEqual(rows, [{"_id": 11}])
        cursor.sort.assert_called_once_with("_id", 1)
        cursor.skip.assert_called_once_with(10)
        cursor.limit.assert_called_once_with(10)

    async def test_aggregate(self):
        cursor = self.collection.aggregate.return_value
        cursor.to_list = AsyncMock(return_value=[{"_id": None, "soldItems": 3}])
        pipeline = [{"$match": {}}]

        self.assertEqual(await self.db.aggregate(pipeline), [{"_id": None, "soldItems": 3}])
        self.collection.aggregate.assert_called_once_with(pipeline)

    async def test_driver_error_becomes_store_error(self):
        self.collection.count_documents = AsyncMock(side_effect=ConnectionFailure("no servers"))
        with self.assertRaises(StoreError) as ctx:
            await self.db.count({})
        self.assertNotIsInstance(ctx.exception, StoreTimeoutError)
        self.assertEqual(ctx.exception.message, "Error counting transactions")
        self.assertIn("no servers", ctx.exception.detail)

    async def test_encoding_overflow_becomes_store_error(self):
        self.collection.count_documents = AsyncMock(
            side_effect=OverflowError("MongoDB can only handle up to 8-byte ints")
        )
        with self.assertRaises(StoreError) as ctx:
            await self.db.count({"price": 2**64})
        self.assertNotIsInstance(ctx.exception, StoreTimeoutError)
        self.assertEqual(ctx.exception.status_code, 500)
        self.assertIn("8-byte ints", ctx.exception.detail)

    async def test_cancellation_propagates_unwrapped(self):
        self.collection.count_documents = AsyncMock(side_effect=asyncio.CancelledError())
        with self.assertRaises(asyncio.CancelledError):
            try:
                await self.db.count({})
            except StoreError:
                self.fail("cancellation was wrapped as StoreError")

    async def test_deadline_becomes_store_timeout(self):
        async def slow(*args, **kwargs):
            await asyncio.sleep(1)

        self.collection.count_documents = slow
        with self.assertRaises(StoreTimeoutError) as ctx:
            await self.db.count({})
        self.assertEqual(ctx.exception.status_code, 504)

    async def test_replace_all_clears_then_inserts(self):
        calls = []
        self.collection.delete_many = AsyncMock(
            side_effect=lambda q: calls.append("delete") or MagicMock(deleted_count=5)
        )
        self.collection.insert_many = AsyncMock(
            side_effect=lambda docs, ordered: calls.append("insert") or MagicMock(inserted_ids=[1, 2])
        )

        inserted = await self.db.replace_all([{"title": "a"}, {"title": "b"}])

        self.assertEqual(inserted, 2)
        self.assertEqual(calls, ["delete", "insert"])
        self.collection.delete_many.assert_awaited_once_with({})

    async def test_replace_all_with_nothing_only_clears(self):
        self.collection.delete_many = AsyncMock(return_value=MagicMock(deleted_count=0))
        self.collection.insert_many = AsyncMock()

        self.assertEqual(await self.db.replace_all([]), 0)
        self.collection.insert_many.assert_not_awaited()

    async def test_insert_failure_is_store_error(self):
        self.collection.delete_many = AsyncMock(return_value=MagicMock(deleted_count=0))
        self.collection.insert_many = AsyncMock(side_effect=PyMongoError("duplicate key"))

        with self.assertRaises(StoreError) as ctx:
            await self.db.replace_all([{"title": "a"}])
        self.assertEqual(ctx.exception.message, "Error inserting transactions")

    def test_close_without_client_is_a_no_op(self):
        self.db.close()


if __name__ == "__main__":
    unittest.main()
