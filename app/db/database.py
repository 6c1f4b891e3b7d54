from sqlalchemy import create_engine, event
from sqlalchemy.orm import declarative_base, sessionmaker
from app.core.config import settings


def enable_sqlite_foreign_keys(engine):
    """SQLite ignores ON DELETE CASCADE unless foreign keys are switched on per connection."""
    @event.listens_for(engine, "connect")
    def _set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    return engine


def build_engine(database_url: str = settings.DATABASE_URL, **kwargs):
    if database_url.startswith("sqlite"):
        connect_args = {"check_same_thread": False}
        connect_args.update(kwargs.pop("connect_args", {}))
        return enable_sqlite_foreign_keys(create_engine(database_url, connect_args=connect_args, **kwargs))

    connect_args = {}
    if settings.DB_STATEMENT_TIMEOUT_MS > 0:
        # Queries running past the timeout are cancelled by the server (SQLSTATE 57014)
        connect_args["options"] = f"-c statement_timeout={settings.DB_STATEMENT_TIMEOUT_MS}"
    return create_engine(database_url, pool_pre_ping=True, connect_args=connect_args, **kwargs)


engine = build_engine()

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def init_db(bind=None):
    """Create all tables that are not there yet (development helper, Alembic owns production)."""
    import app.models  # noqa: F401  registers the models on Base.metadata

    Base.metadata.create_all(bind=bind or engine)


def get_db():
    """Dependency for FastAPI routes to get database session"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
