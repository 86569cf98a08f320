from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from .config import settings


def _normalized_database_url(raw_url: str) -> str:
    """
    Supabase and Render hand out postgres:// URLs; SQLAlchemy needs the psycopg3 dialect named.
    SQLite and URLs that already name a driver are returned unchanged.
    """
    raw_url = (raw_url or "").strip()
    if not raw_url:
        return "sqlite:///./playoga.db"
    scheme, sep, rest = raw_url.partition("://")
    if sep and scheme in ("postgres", "postgresql"):
        return f"postgresql+psycopg://{rest}"
    return raw_url


def _engine_options(url: str) -> dict:
    if url.startswith("sqlite"):
        options: dict = {"connect_args": {"check_same_thread": False}}
        if ":memory:" in url:
            # One shared connection, otherwise every session would see an empty database (tests)
            options["poolclass"] = StaticPool
        return options
    # Pooled Postgres connections get dropped by the provider's pooler when idle
    return {"pool_pre_ping": True, "pool_recycle": 300}


DATABASE_URL = _normalized_database_url(settings.database_url)
engine = create_engine(DATABASE_URL, **_engine_options(DATABASE_URL))


def get_db():
    """Request-scoped session; services commit or roll back themselves."""
    with Session(engine) as session:
        yield session


def init_db():
    # Table classes register on SQLModel.metadata when imported
    import playoga.models  # noqa: F401

    SQLModel.metadata.create_all(engine)
