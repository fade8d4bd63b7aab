# push_scheduler/db.py
from sqlalchemy import (
    Boolean,
    Column,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    create_engine,
)
from databases import Database

metadata = MetaData()

# -------------------------
# Tabele
# -------------------------

# 1) Zaplanowane powiadomienia (klucz: id)
schedules = Table(
    "schedules",
    metadata,
    Column("id", String, primary_key=True),
    Column("title", String, nullable=False),
    Column("body", Text, nullable=False),
    Column("topic", String, nullable=False),
    Column("image", String, nullable=True),
    Column("time", String, nullable=False),  # kanoniczny UTC ISO, np. 2024-01-01T00:00:00.000Z
    Column("sent", Boolean, nullable=False, default=False),
)

# 2) Historia: "scheduled" / "sent"; seq = kolejność dopisywania
history = Table(
    "history",
    metadata,
    Column("seq", Integer, primary_key=True, autoincrement=True),
    Column("id", String, nullable=False, unique=True),
    Column("title", String, nullable=False),
    Column("body", Text, nullable=False),
    Column("topic", String, nullable=False),
    Column("image", String, nullable=True),
    Column("time_utc", String, nullable=False),
    Column("time_local", String, nullable=False),
    Column("type", String, nullable=False),
    Column("message_id", String, nullable=True),
)


def make_database(url: str) -> Database:
    return Database(url)


def create_tables(url: str) -> None:
    """Tworzymy tabele przy starcie (idempotentnie)."""
    engine = create_engine(url)
    try:
        metadata.create_all(engine)
    finally:
        engine.dispose()
