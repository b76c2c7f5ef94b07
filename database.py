"""
Relational store for users and products.

``ShopStore`` is the only component that talks to the database. It is built
once per application and handed to request handlers, so tests can swap in a
store backed by in-memory SQLite.
"""

import logging
from contextlib import contextmanager
from typing import Any, Dict, List, Optional

from sqlalchemy import (
    Column,
    DateTime,
    Integer,
    MetaData,
    Numeric,
    String,
    Table,
    create_engine,
    delete,
    exc,
    func,
    insert,
    inspect,
    select,
    text,
    update,
)
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.pool import QueuePool, StaticPool

from errors import StoreBusy, StoreError
from schemas import Product, User
from settings import Settings

logger = logging.getLogger(__name__)

metadata = MetaData()

users = Table(
    "users",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("full_name", String(255), nullable=False),
    Column("email", String(255), nullable=False, unique=True),
    Column("password", String(255), nullable=False),
    Column("created_at", DateTime, server_default=func.now()),
)

products = Table(
    "products",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(255), nullable=False),
    Column("price", Numeric(10, 2, asdecimal=False), nullable=False),
    Column("image_url", String(1024)),
    Column("category", String(255)),
    Column("created_at", DateTime, server_default=func.now()),
)


def build_engine(settings: Settings) -> Engine:
    """Create an engine whose connection pool never queues without bound.

    At most ``db_pool_size + db_max_overflow`` connections are open at once; a
    caller that cannot get one within ``db_pool_timeout`` seconds fails.
    """
    url = make_url(settings.database_url)
    kwargs: Dict[str, Any] = {"pool_pre_ping": True}
    pooled = {
        "poolclass": QueuePool,
        "pool_size": settings.db_pool_size,
        "max_overflow": settings.db_max_overflow,
        "pool_timeout": settings.db_pool_timeout,
    }

    if url.get_backend_name() == "sqlite":
        kwargs["connect_args"] = {"check_same_thread": False}
        if url.database in (None, "", ":memory:"):
            # Every connection to :memory: is a new empty database
            kwargs["poolclass"] = StaticPool
        else:
            kwargs.update(pooled)
    else:
        kwargs.update(pooled)
        kwargs["pool_recycle"] = 3600
        if settings.db_ssl_ca:
            kwargs["connect_args"] = {"ssl": {"ca": settings.db_ssl_ca}}

    return create_engine(url, **kwargs)


class ShopStore:
    def __init__(self, engine: Engine):
        self.engine = engine

    @classmethod
    def from_settings(cls, settings: Settings) -> "ShopStore":
        return cls(build_engine(settings))

    @property
    def safe_url(self) -> str:
        return self.engine.url.render_as_string(hide_password=True)

    @contextmanager
    def _guard(self, action: str, message: str = "Database error"):
        try:
            yield
        except exc.TimeoutError as e:
            logger.error("Connection pool exhausted while %s: %s", action, e)
            raise StoreBusy("Database busy, try again later") from e
        except (exc.SQLAlchemyError, OverflowError) as e:
            # OverflowError: a bound integer outside the driver's range
            logger.error("Store failure while %s: %s", action, e)
            raise StoreError(message) from e

    # Schema

    def create_schema(self) -> None:
        with self._guard("creating schema"):
            metadata.create_all(self.engine)

    def table_names(self) -> List[str]:
        with self._guard("listing tables"):
            return inspect(self.engine).get_table_names()

    def describe_table(self, name: str) -> List[Dict[str, Any]]:
        with self._guard(f"describing {name}"):
            columns = inspect(self.engine).get_columns(name)
        return [
            {
                "name": col["name"],
                "type": str(col["type"]),
                "nullable": col.get("nullable", True),
                "default": col.get("default"),
            }
            for col in columns
        ]

    def ping(self) -> None:
        with self._guard("pinging database"):
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))

    def dispose(self) -> None:
        self.engine.dispose()

    # Users

    def create_user(self, full_name: str, email: str, password_hash: str) -> int:
        stmt = insert(users).values(full_name=full_name, email=email, password=password_hash)
        with self._guard("creating user", "Registration failed"):
            with self.engine.begin() as conn:
                result = conn.execute(stmt)
        return result.inserted_primary_key[0]

    def get_user_by_email(self, email: str) -> Optional[User]:
        stmt = select(users).where(users.c.email == email)
        with self._guard("looking up user", "Server error"):
            with self.engine.connect() as conn:
                row = conn.execute(stmt).first()
        return User(**row._mapping) if row else None

    # Products

    def list_products(self) -> List[Product]:
        stmt = select(products).order_by(products.c.id)
        with self._guard("listing products"):
            with self.engine.connect() as conn:
                rows = conn.execute(stmt).all()
        return [Product(**row._mapping) for row in rows]

    def get_product(self, product_id: int) -> Optional[Product]:
        stmt = select(products).where(products.c.id == product_id)
        with self._guard("reading product"):
            with self.engine.connect() as conn:
                row = conn.execute(stmt).first()
        return Product(**row._mapping) if row else None

    def create_product(
        self,
        name: str,
        price: float,
        image_url: Optional[str] = None,
        category: Optional[str] = None,
    ) -> int:
        stmt = insert(products).values(name=name, price=price, image_url=image_url, category=category)
        with self._guard("creating product"):
            with self.engine.begin() as conn:
                result = conn.execute(stmt)
        return result.inserted_primary_key[0]

    def update_product(
        self,
        product_id: int,
        name: str,
        price: float,
        image_url: Optional[str] = None,
        category: Optional[str] = None,
    ) -> int:
        """Replace every editable column; returns the number of rows changed."""
        stmt = (
            update(products)
            .where(products.c.id == product_id)
            .values(name=name, price=price, image_url=image_url, category=category)
        )
        with self._guard("updating product"):
            with self.engine.begin() as conn:
                result = conn.execute(stmt)
        return result.rowcount

    def delete_product(self, product_id: int) -> int:
        stmt = delete(products).where(products.c.id == product_id)
        with self._guard("deleting product"):
            with self.engine.begin() as conn:
                result = conn.execute(stmt)
        return result.rowcount


if __name__ == "__main__":
    from logger import setup_logger
    from settings import get_settings

    settings = get_settings()
    setup_logger(level=settings.log_level)
    store = ShopStore.from_settings(settings)
    try:
        for table in ("users", "products"):
            print(f"{table} table structure:")
            try:
                columns = store.describe_table(table)
            except StoreError as e:
                print(f"  error: {e.message}")
                continue
            for col in columns:
                nullable = "NULL" if col["nullable"] else "NOT NULL"
                default = f" DEFAULT {col['default']}" if col["default"] is not None else ""
                print(f"  {col['name']:<12} {col['type']:<16} {nullable}{default}")
    finally:
        store.dispose()
