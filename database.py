import os
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, DeclarativeBase

# world state of the ledger: one row per key
DB_URL = os.getenv("DATABASE_URL", "sqlite:////tmp/ricetrace.db")
connect_args = {"check_same_thread": False} if DB_URL.startswith("sqlite") else {}

engine = create_engine(DB_URL, connect_args=connect_args, pool_pre_ping=True)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


class Base(DeclarativeBase):
    pass


def init_db(bind=None):
    import models  # noqa: F401  registers the world-state table

    Base.metadata.create_all(bind=bind or engine)
