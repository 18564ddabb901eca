"""
Seeding: replace the whole collection with the upstream JSON dataset.

The fetch is blocking (requests) and runs in a worker thread. Records are
validated before anything is deleted, so a bad payload leaves the store as
it was.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import timezone
from typing import Any, Dict, List

import requests
from pydantic import ValidationError as PydanticValidationError

from transaction_reports.data.db import TransactionDB
from transaction_reports.domain.models import Transaction
from transaction_reports.errors import UpstreamFetchError

logger = logging.getLogger(__name__)


def fetch_transactions(url: str, timeout: float = 30) -> List[Dict[str, Any]]:
    """Download the dataset. Must be a JSON array of objects."""
    try:
        r = requests.get(url, timeout=timeout)
        r.raise_for_status()
        data = r.json()
    except requests.RequestException as e:
        raise UpstreamFetchError(detail=f"could not fetch {url}: {e}") from e
    except ValueError as e:
        raise UpstreamFetchError(detail=f"{url} did not return JSON") from e

    if not isinstance(data, list):
        raise UpstreamFetchError(detail=f"{url} returned {type(data).__name__}, expected a list")

    return data


def normalise_transactions(items: List[Any]) -> List[Dict[str, Any]]:
    """Validate raw items and convert them into documents ready for insert."""
    documents = []
    for i, item in enumerate(items):
        try:
            tx = Transaction.model_validate(item)
        except PydanticValidationError as e:
            raise UpstreamFetchError(detail=f"record {i} is invalid: {e.errors()[0]['msg']}") from e

        # Dates without an offset are taken as UTC
        if tx.dateOfSale.tzinfo is None:
            tx.dateOfSale = tx.dateOfSale.replace(tzinfo=timezone.utc)

        documents.append(tx.model_dump(exclude_none=True))
    return documents


async def seed_database(db: TransactionDB, url: str, timeout: float = 30) -> int:
    """Fetch, validate, then replace the store contents. Returns the number inserted."""
    items = await asyncio.to_thread(fetch_transactions, url, timeout)
    logger.info("Fetched %d transactions from %s", len(items), url)

    documents = normalise_transactions(items)
    inserted = await db.replace_all(documents)

    logger.info("Seeded %d transactions", inserted)
    return inserted
