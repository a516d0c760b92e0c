# backend/local_db/db.py
from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    MetaData,
    String,
    Table,
    Text,
    create_engine,
    event,
    select,
)
from sqlalchemy.engine import Engine

from comparison.models import (
    TERMINAL_STATUSES,
    Comparison,
    ComparisonView,
    Product,
    ProductFields,
    SearchRecord,
)

metadata = MetaData()

# -----------------------------
# Tables
# -----------------------------
products = Table(
    "products",
    metadata,
    Column("id", String(32), primary_key=True),
    Column("name", String(1024), nullable=False),
    Column("description", Text),
    Column("price", Float, nullable=False),
    Column("currency", String(8), nullable=False),
    Column("original_price", Float),
    Column("platform", String(32), nullable=False),       # amazon | ebay | ... | unknown
    Column("url", String(2048), nullable=False),
    Column("image_url", String(2048)),
    Column("brand", String(256)),
    Column("category", String(256)),
    Column("availability", Boolean, nullable=False),
    Column("extracted_at", DateTime(timezone=True), nullable=False),
    Column("search_query", String(1024), nullable=False),
    Column("metadata", JSON),
    Index("ix_products_platform_search", "platform", "search_query"),
    Index("ix_products_url", "url"),
)

comparisons = Table(
    "comparisons",
    metadata,
    Column("id", String(32), primary_key=True),
    Column("original_product_id", String(32), ForeignKey("products.id"), nullable=False),
    Column("search_query", String(1024), nullable=False),
    Column("status", String(16), nullable=False),          # searching | completed | failed
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column("completed_at", DateTime(timezone=True)),
    Column("product_ids", JSON, nullable=False),
    Column("error", Text),
    Index("ix_comparisons_status_created", "status", "created_at"),
)

searches = Table(
    "searches",
    metadata,
    Column("id", String(32), primary_key=True),
    Column("url", String(2048), nullable=False),
    Column("user_agent", String(512)),
    Column("ip", String(64)),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column("successful", Boolean, nullable=False),
    Column("comparison_id", String(32), ForeignKey("comparisons.id")),
    Column("error", Text),
    Index("ix_searches_created_at", "created_at"),
)

_OPTIONAL_PRODUCT_FIELDS = (
    "original_price", "description", "image_url", "brand", "category", "metadata",
)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return uuid.uuid4().hex


def create_db_engine(database_url: str) -> Engine:
    connect_args = {}
    if database_url.startswith("sqlite"):
        # The async pipeline reaches the store from worker threads.
        connect_args["check_same_thread"] = False
    engine = create_engine(database_url, future=True, echo=False, connect_args=connect_args)

    if database_url.startswith("sqlite"):
        @event.listens_for(engine, "connect")
        def set_sqlite_pragma(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA journal_mode=WAL;")
            cursor.execute("PRAGMA foreign_keys=ON;")
            cursor.close()

    return engine


class DealStore:
    """
    Persistence gateway for products, comparisons and search analytics.

    All methods are blocking; async callers offload them with
    `asyncio.to_thread`.
    """

    def __init__(self, engine: Engine):
        self.engine = engine

    @classmethod
    def from_url(cls, database_url: str) -> "DealStore":
        store = cls(create_db_engine(database_url))
        store.init_db()
        return store

    def init_db(self) -> None:
        metadata.create_all(self.engine)

    # -----------------------------
    # Searches
    # -----------------------------
    def insert_search(
        self,
        url: str,
        successful: bool = False,
        user_agent: Optional[str] = None,
        ip: Optional[str] = None,
    ) -> str:
        search_id = _new_id()
        with self.engine.begin() as conn:
            conn.execute(searches.insert().values(
                id=search_id,
                url=url,
                successful=successful,
                user_agent=user_agent,
                ip=ip,
                created_at=_now(),
            ))
        return search_id

    def update_search_status(
        self,
        search_id: str,
        successful: bool,
        comparison_id: Optional[str] = None,
        error: Optional[str] = None,
    ) -> None:
        values: Dict[str, Any] = {"successful": successful, "error": error}
        if comparison_id is not None:
            values["comparison_id"] = comparison_id
        with self.engine.begin() as conn:
            res = conn.execute(searches.update().where(searches.c.id == search_id).values(**values))
            if res.rowcount == 0:
                raise KeyError(f"search {search_id} not found")

    def get_search(self, search_id: str) -> Optional[SearchRecord]:
        with self.engine.begin() as conn:
            row = conn.execute(select(searches).where(searches.c.id == search_id)).mappings().first()
        return SearchRecord(**row) if row else None

    # -----------------------------
    # Products
    # -----------------------------
    def insert_product(self, fields: ProductFields | Dict[str, Any]) -> str:
        """Insert an immutable product snapshot and return its id."""
        record = fields.to_record() if isinstance(fields, ProductFields) else dict(fields)
        nulls = [k for k in _OPTIONAL_PRODUCT_FIELDS if k in record and record[k] is None]
        if nulls:
            raise ValueError(f"optional product fields must be omitted, not null: {', '.join(nulls)}")

        # Validate the shape before it reaches the table.
        ProductFields(**record)

        product_id = _new_id()
        row = {k: record.get(k) for k in _OPTIONAL_PRODUCT_FIELDS}
        row.update(
            id=product_id,
            name=record["name"],
            price=float(record["price"]),
            currency=record["currency"],
            platform=record["platform"],
            url=record["url"],
            availability=bool(record.get("availability", True)),
            search_query=record["search_query"],
            extracted_at=_now(),
        )
        with self.engine.begin() as conn:
            conn.execute(products.insert().values(**row))
        return product_id

    def get_product(self, product_id: str) -> Optional[Product]:
        with self.engine.begin() as conn:
            row = conn.execute(select(products).where(products.c.id == product_id)).mappings().first()
        return _row_to_product(row) if row else None

    # -----------------------------
    # Comparisons
    # -----------------------------
    def insert_comparison(self, original_product_id: str, search_query: str) -> str:
        comparison_id = _new_id()
        with self.engine.begin() as conn:
            conn.execute(comparisons.insert().values(
                id=comparison_id,
                original_product_id=original_product_id,
                search_query=search_query,
                status="searching",
                created_at=_now(),
                product_ids=[],
            ))
        return comparison_id

    def update_comparison(
        self,
        comparison_id: str,
        status: str,
        product_ids: List[str],
        error: Optional[str] = None,
    ) -> None:
        """Patch status/results; completed_at is stamped only for terminal statuses."""
        with self.engine.begin() as conn:
            current = conn.execute(
                select(comparisons.c.status).where(comparisons.c.id == comparison_id)
            ).scalar_one_or_none()
            if current is None:
                raise KeyError(f"comparison {comparison_id} not found")
            if current in TERMINAL_STATUSES:
                raise ValueError(f"comparison {comparison_id} is already {current}")

            conn.execute(comparisons.update().where(comparisons.c.id == comparison_id).values(
                status=status,
                product_ids=list(product_ids),
                completed_at=_now() if status in TERMINAL_STATUSES else None,
                error=error,
            ))

    def get_comparison_record(self, comparison_id: str) -> Optional[Comparison]:
        with self.engine.begin() as conn:
            row = conn.execute(select(comparisons).where(comparisons.c.id == comparison_id)).mappings().first()
        return Comparison(**row) if row else None

    def get_comparison(self, comparison_id: str) -> Optional[ComparisonView]:
        """Comparison with product references resolved; dangling ids are dropped."""
        record = self.get_comparison_record(comparison_id)
        if record is None:
            return None

        wanted = [record.original_product_id, *record.product_ids]
        with self.engine.begin() as conn:
            rows = conn.execute(select(products).where(products.c.id.in_(wanted))).mappings().all()
        by_id = {r["id"]: _row_to_product(r) for r in rows}

        return ComparisonView(
            id=record.id,
            status=record.status,
            search_query=record.search_query,
            original_product=by_id.get(record.original_product_id),
            products=[by_id[pid] for pid in record.product_ids if pid in by_id],
            error=record.error,
            created_at=record.created_at,
            completed_at=record.completed_at,
        )


def _row_to_product(row) -> Product:
    data = {k: v for k, v in dict(row).items() if v is not None}
    return Product(**data)
