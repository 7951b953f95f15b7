"""
FastAPI server — read-only query API over the shared transaction store.

Routes:
    GET  /transactions?id=<signature>
    GET  /transactions?day=<date>
    GET  /transactions/count
    POST /sql            (raw SQL text body)
    GET  /status

Every query runs under the store's read lock; a failed query is a 400 with
{"error": ...} and leaves the store and other queries untouched.
"""

from __future__ import annotations

from fastapi import FastAPI, Query, Request
from fastapi.responses import JSONResponse, Response

from solagg import __version__
from solagg.config.settings import DEFAULT_TABLE_NAME
from solagg.core.exceptions import QueryError, UnsupportedDateFormat
from solagg.solagg_logging import get_logger
from solagg.store.shared import SharedStore
from solagg.utils.date_utils import normalize_date

logger = get_logger(__name__)


def sql_literal(value: str) -> str:
    """Quote a value as a SQL string literal."""
    return "'" + value.replace("'", "''") + "'"


def create_app(shared: SharedStore, table_name: str = DEFAULT_TABLE_NAME) -> FastAPI:
    """Build the query API bound to one SharedStore."""
    app = FastAPI(
        title="SolAgg API",
        description="SQL-backed read API over aggregated Solana transactions.",
        version=__version__,
    )
    app.state.shared_store = shared
    app.state.table_name = table_name

    async def run_query(sql: str) -> Response:
        try:
            body = await shared.query_to_json(sql, table_name)
        except QueryError as e:
            logger.warning("api_query_failed", sql=sql[:200], error=str(e))
            return JSONResponse(status_code=400, content={"error": str(e)})
        logger.debug("api_query_json", sql=sql[:200], size=len(body))
        return Response(content=body, media_type="application/json")

    @app.get("/transactions")
    async def transactions(
        signature: str | None = Query(None, alias="id", description="Transaction signature"),
        day: str | None = Query(None, description="Day of block_time, e.g. 2024-07-07 or 07/07/2024"),
    ) -> Response:
        """Look up transactions by signature or by day of block time."""
        if signature is not None:
            sql = f"SELECT * FROM {table_name} WHERE signature = {sql_literal(signature)}"
            return await run_query(sql)
        if day is not None:
            try:
                iso_day = normalize_date(day)
            except UnsupportedDateFormat as e:
                return JSONResponse(status_code=400, content={"error": str(e)})
            sql = f"SELECT * FROM {table_name} WHERE cast(block_time as DATE) = {sql_literal(iso_day)}"
            return await run_query(sql)
        return JSONResponse(status_code=400, content={"error": "one of id or day is required"})

    @app.get("/transactions/count")
    async def transactions_count() -> Response:
        return await run_query(f"SELECT count(1) as count FROM {table_name}")

    @app.post("/sql")
    async def transactions_sql(request: Request) -> Response:
        """Run raw SQL against the transactions table (trusted callers only)."""
        raw = await request.body()
        try:
            sql = raw.decode("utf-8")
        except UnicodeDecodeError:
            return JSONResponse(content={"error": "Invalid UTF-8"})
        return await run_query(sql)

    @app.get("/status")
    async def status() -> dict:
        return await shared.status()

    return app
