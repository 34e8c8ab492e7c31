from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session
from nearandnow.core_settings import get_settings
from nearandnow.domain.models import Base

def build_engine(url: str) -> Engine:
    if url.startswith("sqlite"):
        # Local/dev databases; enforce FKs so RESTRICT/CASCADE match Postgres
        engine = create_engine(url, echo=False, future=True,
                               connect_args={"check_same_thread": False, "timeout": 30})

        @event.listens_for(engine, "connect")
        def _enable_foreign_keys(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        return engine
    return create_engine(url, echo=False, future=True, pool_pre_ping=True)

settings = get_settings()
DATABASE_URL = settings.database_url
engine = build_engine(DATABASE_URL)
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)

def get_db() -> Session:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

def init_models(bind: Engine = engine):
    Base.metadata.create_all(bind)
