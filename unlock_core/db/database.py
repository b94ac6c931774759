from functools import lru_cache

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from unlock_core.config.settings import Settings


@lru_cache()
def _engine_for(database_url: str):
    return create_engine(database_url, pool_pre_ping=True, future=True)


def get_engine(settings: Settings):
    return _engine_for(settings.database_url)


def get_sessionmaker(settings: Settings) -> sessionmaker:
    return sessionmaker(
        bind=get_engine(settings),
        autoflush=False,
        autocommit=False,
        expire_on_commit=False,
        future=True,
    )
