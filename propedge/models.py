"""
Database models for the Prop Edge evaluator.
SQLAlchemy ORM; SQLite by default, any SQLAlchemy URL via DATABASE_URL.
"""

from datetime import datetime

from sqlalchemy import Column, DateTime, Float, Integer, String, create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from propedge.config import Settings

DATABASE_URL = Settings.from_env().database_url


def make_engine(url: str):
    """Engine for ``url``; SQLite connections are shared across threadpool workers."""
    connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
    return create_engine(url, pool_pre_ping=True, echo=False, connect_args=connect_args)


engine = make_engine(DATABASE_URL)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


# Dependency for FastAPI
def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db(bind=None) -> None:
    """Create missing tables."""
    Base.metadata.create_all(bind=bind or engine)


class EvaluationHistory(Base):
    """One evaluation served to a subject."""

    __tablename__ = "evaluation_history"

    id = Column(Integer, primary_key=True, index=True)
    subject = Column(String, nullable=False, index=True)
    sport = Column(String, nullable=False, default="")
    statistic_line = Column(String, nullable=False, default="")
    confidence = Column(Float, nullable=False, default=0.0)
    decision = Column(String, nullable=False)
    clv = Column(Float)  # percent, None when no usable prices
    timestamp = Column(DateTime, default=datetime.utcnow, index=True)

    def __repr__(self):
        return (
            f"<EvaluationHistory {self.subject} {self.statistic_line!r} "
            f"{self.decision} {self.confidence}>"
        )
