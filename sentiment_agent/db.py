from sqlalchemy import create_engine, text
from sqlalchemy.orm import sessionmaker, DeclarativeBase
from sqlalchemy.pool import StaticPool
from .config import settings

_engine_kwargs: dict = {"future": True, "pool_pre_ping": True}
if settings.database_url in ("sqlite://", "sqlite:///:memory:"):
    # one shared connection, otherwise every session sees an empty database
    _engine_kwargs.update(
        connect_args={"check_same_thread": False}, poolclass=StaticPool
    )

engine = create_engine(settings.database_url, **_engine_kwargs)
if settings.database_url.startswith("sqlite") and ":memory:" not in settings.database_url:
    with engine.connect() as conn:
        conn.execute(text("PRAGMA journal_mode=WAL;"))
        conn.execute(text("PRAGMA synchronous=NORMAL;"))
        conn.commit()

SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)

class Base(DeclarativeBase):
    pass

def get_session():
    return SessionLocal()

def init_db():
    Base.metadata.create_all(bind=engine)

def ping_database() -> bool:
    """True when the database is enabled and answers a trivial query."""
    if not settings.use_database:
        return False
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except Exception:
        return False
