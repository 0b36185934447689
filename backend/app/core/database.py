from collections.abc import Generator
from typing import Any

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from app.core.config import settings

engine = create_engine(
    settings.APP_DATABASE_DSN,
    connect_args=({"check_same_thread": False} if "sqlite" in settings.APP_DATABASE_DSN else {}),
)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base: Any = declarative_base()


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db() -> None:
    """Initialize database tables and seed the plan catalog."""
    import app.models  # noqa: F401  registers tables on Base.metadata
    from app.repositories.plan_repository import PlanRepository

    Base.metadata.create_all(bind=engine)

    db = SessionLocal()
    try:
        PlanRepository(db).seed_defaults()
    finally:
        db.close()
