# transaction_reports/interfaces/api.py
# FastAPI backend for the transactions dataset
# - seed from the upstream JSON file
# - list with month / search / pagination
# - monthly statistics, bar chart, pie chart, combined report

from __future__ import annotations

import logging
from contextlib import asynccontextmanager, contextmanager
from dataclasses import asdict
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import BaseModel

from transaction_reports.config import Settings, load_settings
from transaction_reports.data.db import TransactionDB
from transaction_reports.errors import StoreError, StoreTimeoutError, TransactionsAPIError
from transaction_reports.services import query_builder as qb
from transaction_reports.services.reports import (
    gather_all,
    get_bar_chart,
    get_combined,
    get_pie_chart,
    get_statistics,
)
from transaction_reports.services.seeder import seed_database
from transaction_reports.utils.logger import configure_logging

logger = logging.getLogger(__name__)


# ----------------------------
# Pydantic models
# ----------------------------
class TransactionsPage(BaseModel):
    transactions: List[Dict[str, Any]]
    total: int
    page: int
    perPage: int


class StatisticsOut(BaseModel):
    totalSaleAmount: float
    soldItems: int
    unsoldItems: int


class RangeCountOut(BaseModel):
    range: str
    count: int


class CategoryCountOut(BaseModel):
    category: Optional[str] = None
    count: int


class CombinedOut(BaseModel):
    statistics: StatisticsOut
    barChart: List[RangeCountOut]
    pieChart: List[CategoryCountOut]


# ----------------------------
# Helpers
# ----------------------------
def get_db(request: Request) -> TransactionDB:
    db = request.app.state.db
    if db is None:
        raise StoreError("Database not connected")
    return db


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


@contextmanager
def _store_errors(message: str):
    """Re-label store failures with the endpoint's message. Timeouts keep theirs."""
    try:
        yield
    except StoreTimeoutError:
        raise
    except StoreError as e:
        raise StoreError(message, detail=e.detail or e.message) from e


def _month_query(month: int, settings: Settings) -> Dict[str, Any]:
    return qb.month_filter(month, settings.report_year, settings.report_timezone)


def _doc_to_dict(doc: Dict[str, Any]) -> Dict[str, Any]:
    out = {}
    for key, value in doc.items():
        if key == "_id":
            out[key] = str(value)
        elif isinstance(value, datetime):
            out[key] = value.isoformat()
        else:
            out[key] = value
    return out


async def _api_error(request: Request, exc: TransactionsAPIError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc, exc_info=exc)
    else:
        logger.warning("%s %s rejected: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=exc.status_code,
        content={"message": exc.message, "error": exc.detail},
    )


# ----------------------------
# App
# ----------------------------
def create_app(settings: Optional[Settings] = None, db: Optional[TransactionDB] = None) -> FastAPI:
    """
    Build the application. When `db` is given it is used as-is and never
    closed by the app; otherwise a client is opened at startup.
    """
    settings = settings or load_settings()
    configure_logging(settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owns_db = app.state.db is None
        if owns_db:
            app.state.db = TransactionDB.connect(settings)
            try:
                await app.state.db.ensure_indexes()
            except StoreError as e:
                logger.warning("Could not create indexes: %s", e)
        yield
        if owns_db:
            app.state.db.close()
            app.state.db = None

    app = FastAPI(title="Transactions API", version="1.0.0", lifespan=lifespan)
    app.state.settings = settings
    app.state.db = db

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials="*" not in settings.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(TransactionsAPIError, _api_error)

    # ----------------------------
    # Routes
    # ----------------------------
    @app.get("/", response_class=PlainTextResponse)
    def root():
        return "Welcome to the Transactions API!"

    @app.get("/health")
    def health():
        return {"status": "ok"}

    @app.get("/api/seed", response_class=PlainTextResponse)
    async def seed(db: TransactionDB = Depends(get_db), settings: Settings = Depends(get_settings)):
        with _store_errors("Error seeding the database"):
            await seed_database(db, settings.seed_url, settings.seed_timeout_seconds)
        return "Database seeded successfully"

    @app.get("/api/transactions", response_model=TransactionsPage)
    async def transactions(
        month: Optional[str] = None,
        search: str = "",
        page: Optional[str] = None,
        perPage: Optional[str] = None,
        db: TransactionDB = Depends(get_db),
        settings: Settings = Depends(get_settings),
    ):
        query = qb.listing_query(month, search, settings.report_year, settings.report_timezone)
        paging = qb.paginate(page, perPage, settings.max_per_page)

        with _store_errors("Error fetching transactions"):
            rows, total = await gather_all(
                db.find_page(query, paging.skip, paging.limit),
                db.count(query),
            )

        return {
            "transactions": [_doc_to_dict(r) for r in rows],
            "total": total,
            "page": paging.page,
            "perPage": paging.per_page,
        }

    @app.get("/api/statistics", response_model=StatisticsOut)
    async def statistics(
        month: Optional[str] = None,
        db: TransactionDB = Depends(get_db),
        settings: Settings = Depends(get_settings),
    ):
        query = _month_query(qb.require_month(month), settings)
        with _store_errors("Error fetching statistics"):
            result = await get_statistics(db, query)
        return asdict(result)

    @app.get("/api/bar-chart", response_model=List[RangeCountOut])
    async def bar_chart(
        month: Optional[str] = None,
        db: TransactionDB = Depends(get_db),
        settings: Settings = Depends(get_settings),
    ):
        query = _month_query(qb.require_month(month), settings)
        with _store_errors("Error fetching bar chart data"):
            result = await get_bar_chart(db, query)
        return [asdict(r) for r in result]

    @app.get("/api/pie-chart", response_model=List[CategoryCountOut])
    async def pie_chart(
        month: Optional[str] = None,
        db: TransactionDB = Depends(get_db),
        settings: Settings = Depends(get_settings),
    ):
        number = qb.parse_month(month)
        query = _month_query(number, settings) if number is not None else {}
        with _store_errors("Error fetching pie chart data"):
            result = await get_pie_chart(db, query)
        return [asdict(r) for r in result]

    @app.get("/api/combined", response_model=CombinedOut)
    async def combined(
        month: Optional[str] = None,
        db: TransactionDB = Depends(get_db),
        settings: Settings = Depends(get_settings),
    ):
        query = _month_query(qb.require_month(month), settings)
        with _store_errors("Error fetching combined data"):
            result = await get_combined(db, query)
        return asdict(result)

    return app
