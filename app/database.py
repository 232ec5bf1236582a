from datetime import datetime, timezone

from sqlalchemy import create_engine, inspect, text
from sqlalchemy.orm import DeclarativeBase, sessionmaker

from app.config import settings

connect_args = {}
if settings.DATABASE_URL.startswith("sqlite"):
    connect_args["check_same_thread"] = False

engine = create_engine(settings.DATABASE_URL, connect_args=connect_args)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


class Base(DeclarativeBase):
    pass


def utcnow() -> datetime:
    """Naive UTC timestamp with microseconds, used where rows must replay in insertion order."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def _migrate_add_columns():
    """Add missing columns to existing tables (works for both SQLite and PostgreSQL)."""
    inspector = inspect(engine)
    tables = inspector.get_table_names()

    if "users" in tables:
        existing = {col["name"] for col in inspector.get_columns("users")}
        new_cols = {
            "email": "VARCHAR DEFAULT ''",
            "requires_password_change": "BOOLEAN DEFAULT FALSE",
        }
        with engine.begin() as conn:
            for col_name, col_type in new_cols.items():
                if col_name not in existing:
                    conn.execute(text(f"ALTER TABLE users ADD COLUMN {col_name} {col_type}"))

    if "orders" in tables:
        existing = {col["name"] for col in inspector.get_columns("orders")}
        new_cols = {
            "discount_amount": "FLOAT DEFAULT 0.0",
            "completed_at": "TIMESTAMP DEFAULT NULL",
            "locked_at": "TIMESTAMP DEFAULT NULL",
            "locked_by": "VARCHAR DEFAULT NULL",
            "can_unlock_until": "TIMESTAMP DEFAULT NULL",
            "third_party_delivery_enabled": "BOOLEAN DEFAULT FALSE",
        }
        with engine.begin() as conn:
            for col_name, col_type in new_cols.items():
                if col_name not in existing:
                    conn.execute(text(f"ALTER TABLE orders ADD COLUMN {col_name} {col_type}"))


def import_models():
    """Import all models so Base.metadata knows about them."""
    import app.models.user  # noqa: F401
    import app.models.finance  # noqa: F401
    import app.models.lot  # noqa: F401
    import app.models.stock_movement  # noqa: F401
    import app.models.batch  # noqa: F401
    import app.models.processed_good  # noqa: F401
    import app.models.customer  # noqa: F401
    import app.models.order  # noqa: F401
    import app.models.invoice  # noqa: F401
    import app.models.delivery  # noqa: F401
    import app.models.document  # noqa: F401


def init_db():
    import_models()
    Base.metadata.create_all(bind=engine)
    _migrate_add_columns()
