import os

from dotenv import load_dotenv
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker


load_dotenv()


def _require_env(name: str) -> str:
    value = os.environ.get(name)
    if not value:
        raise RuntimeError(f"Missing required environment variable: {name}")
    return value


def _connect_args(db_url: str) -> dict:
    # SQLite connections are shared with the listing count worker thread.
    if db_url.startswith("sqlite"):
        return {"check_same_thread": False}
    return {}


ASSET_BOOKING_DB_URL = _require_env("ASSET_BOOKING_DB_URL")

engine_asset = create_engine(
    ASSET_BOOKING_DB_URL,
    pool_pre_ping=True,
    connect_args=_connect_args(ASSET_BOOKING_DB_URL),
    future=True,
)

SessionLocalAsset = sessionmaker(
    bind=engine_asset,
    autoflush=False,
    autocommit=False,
    expire_on_commit=False,
    future=True,
)
