from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Dict, List, Optional, TypeVar

from bson.errors import BSONError
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorCollection
from pymongo import ASCENDING
from pymongo.errors import PyMongoError

from transaction_reports.config import Settings
from transaction_reports.errors import StoreError, StoreTimeoutError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class TransactionDB:
    """
    Async access to the transactions collection.

    Every call runs under `timeout_seconds`; driver failures surface as
    StoreError and expired deadlines as StoreTimeoutError. Nothing is retried.
    """

    def __init__(
        self,
        collection: AsyncIOMotorCollection,
        timeout_seconds: float = 10.0,
        client: Optional[AsyncIOMotorClient] = None,
    ):
        self.collection = collection
        self.timeout_seconds = timeout_seconds
        self._client = client

    @classmethod
    def connect(cls, settings: Settings) -> "TransactionDB":
        client = AsyncIOMotorClient(settings.mongodb_url, tz_aware=True)
        collection = client[settings.mongodb_db][settings.mongodb_collection]
        logger.info(
            "Using collection %s.%s", settings.mongodb_db, settings.mongodb_collection
        )
        return cls(collection, timeout_seconds=settings.store_timeout_seconds, client=client)

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            logger.info("Database connection closed")

    async def _run(self, operation: Awaitable[T], action: str) -> T:
        try:
            return await asyncio.wait_for(operation, timeout=self.timeout_seconds)
        except asyncio.TimeoutError as e:
            raise StoreTimeoutError(detail=f"{action} exceeded {self.timeout_seconds}s") from e
        except (PyMongoError, BSONError, OverflowError) as e:
            raise StoreError(f"Error {action}", detail=str(e)) from e

    async def ensure_indexes(self) -> None:
        await self._run(
            self.collection.create_index([("dateOfSale", ASCENDING)]),
            "creating indexes",
        )

    async def find_page(self, query: Dict[str, Any], skip: int, limit: int) -> List[Dict[str, Any]]:
        cursor = self.collection.find(query).sort("_id", ASCENDING).skip(skip).limit(limit)
        return await self._run(cursor.to_list(length=limit), "fetching transactions")

    async def count(self, query: Dict[str, Any]) -> int:
        return await self._run(self.collection.count_documents(query), "counting transactions")

    async def aggregate(self, pipeline: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        cursor = self.collection.aggregate(pipeline)
        return await self._run(cursor.to_list(length=None), "running aggregation")

    async def replace_all(self, documents: List[Dict[str, Any]]) -> int:
        """
        Delete every record, then insert `documents`.
        Readers running in between may see an empty or partial collection.
        """
        deleted = await self._run(self.collection.delete_many({}), "clearing transactions")
        logger.info("Deleted %d existing transactions", deleted.deleted_count)

        if not documents:
            return 0

        result = await self._run(
            self.collection.insert_many(documents, ordered=True),
            "inserting transactions",
        )
        return len(result.inserted_ids)
