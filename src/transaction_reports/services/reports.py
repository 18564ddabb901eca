"""
Monthly reports over the transactions collection.

Each aggregator takes the store and an already-built filter, runs one
aggregation pipeline and shapes the result. None of them write.
"""

from __future__ import annotations

import asyncio
from typing import Any, Dict, List

from transaction_reports.data.db import TransactionDB
from transaction_reports.domain.models import (
    PRICE_RANGES,
    CategoryCount,
    CombinedReport,
    RangeCount,
    Statistics,
)


def statistics_pipeline(query: Dict[str, Any]) -> List[Dict[str, Any]]:
    return [
        {"$match": query},
        {
            "$group": {
                "_id": None,
                "totalSaleAmount": {"$sum": "$price"},
                "soldItems": {"$sum": {"$cond": [{"$eq": ["$sold", True]}, 1, 0]}},
                "unsoldItems": {"$sum": {"$cond": [{"$eq": ["$sold", False]}, 1, 0]}},
            }
        },
    ]


def _price_range_branches() -> List[Dict[str, Any]]:
    # Branches are tried in order; a record falls into the first range whose
    # lower bound it reaches and whose successor's lower bound it does not.
    branches = []
    for current, following in zip(PRICE_RANGES, PRICE_RANGES[1:] + [None]):
        conditions: List[Dict[str, Any]] = [{"$gte": ["$price", current.lower]}]
        if following is not None:
            conditions.append({"$lt": ["$price", following.lower]})
        branches.append({"case": {"$and": conditions}, "then": current.label})
    return branches


def bar_chart_pipeline(query: Dict[str, Any]) -> List[Dict[str, Any]]:
    return [
        {"$match": query},
        {
            "$group": {
                "_id": {"$switch": {"branches": _price_range_branches(), "default": None}},
                "count": {"$sum": 1},
            }
        },
    ]


def pie_chart_pipeline(query: Dict[str, Any]) -> List[Dict[str, Any]]:
    pipeline: List[Dict[str, Any]] = []
    if query:
        pipeline.append({"$match": query})
    pipeline += [
        {"$group": {"_id": "$category", "count": {"$sum": 1}}},
        {"$sort": {"_id": 1}},
    ]
    return pipeline


async def gather_all(*operations):
    """
    Await every operation concurrently. Once all have settled, re-raise the
    first failure in argument order; otherwise return the results in order.
    """
    results = await asyncio.gather(*operations, return_exceptions=True)
    for result in results:
        if isinstance(result, BaseException):
            raise result
    return results


async def get_statistics(db: TransactionDB, query: Dict[str, Any]) -> Statistics:
    rows = await db.aggregate(statistics_pipeline(query))
    if not rows:
        return Statistics(totalSaleAmount=0, soldItems=0, unsoldItems=0)

    row = rows[0]
    return Statistics(
        totalSaleAmount=row.get("totalSaleAmount") or 0,
        soldItems=int(row.get("soldItems") or 0),
        unsoldItems=int(row.get("unsoldItems") or 0),
    )


async def get_bar_chart(db: TransactionDB, query: Dict[str, Any]) -> List[RangeCount]:
    rows = await db.aggregate(bar_chart_pipeline(query))
    counts = {row["_id"]: int(row["count"]) for row in rows if row.get("_id") is not None}
    return [RangeCount(range=r.label, count=counts.get(r.label, 0)) for r in PRICE_RANGES]


async def get_pie_chart(db: TransactionDB, query: Dict[str, Any]) -> List[CategoryCount]:
    rows = await db.aggregate(pie_chart_pipeline(query))
    return [
        CategoryCount(category=row["_id"], count=int(row["count"]))
        for row in rows
        if row.get("count")
    ]


async def get_combined(db: TransactionDB, query: Dict[str, Any]) -> CombinedReport:
    """Run the three reports concurrently. Any failure fails the whole report."""
    statistics, bar_chart, pie_chart = await gather_all(
        get_statistics(db, query),
        get_bar_chart(db, query),
        get_pie_chart(db, query),
    )
    return CombinedReport(statistics=statistics, barChart=bar_chart, pieChart=pie_chart)
