from __future__ import annotations

import uuid
from datetime import datetime, timezone
from pathlib import Path

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, String, Text, create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, relationship, sessionmaker

Base = declarative_base()


def _uuid() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Project(Base):
    __tablename__ = "dumbgoodies_projects"

    id = Column(String(36), primary_key=True, default=_uuid)
    brand = Column(String(255), nullable=False)
    logo_url = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)

    concepts = relationship("Concept", back_populates="project", cascade="all, delete-orphan")


class Concept(Base):
    __tablename__ = "dumbgoodies_concepts"

    id = Column(String(36), primary_key=True, default=_uuid)
    project_id = Column(String(36), ForeignKey("dumbgoodies_projects.id", ondelete="CASCADE"), nullable=False, index=True)
    label = Column(String(255), nullable=False)
    prompt_base = Column(Text, nullable=False)
    status = Column(String(32), nullable=False, default="idea")
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)

    project = relationship("Project", back_populates="concepts")


class Render(Base):
    __tablename__ = "dumbgoodies_renders"

    id = Column(String(36), primary_key=True, default=_uuid)
    # Renders saved from the "render more" flow carry brand/product instead of ids.
    project_id = Column(String(36), ForeignKey("dumbgoodies_projects.id", ondelete="CASCADE"), nullable=True, index=True)
    concept_id = Column(String(36), ForeignKey("dumbgoodies_concepts.id", ondelete="CASCADE"), nullable=True)
    brand = Column(String(255), nullable=True)
    product = Column(String(255), nullable=True)
    model = Column(String(128), nullable=False)
    image_url = Column(Text, nullable=False)
    thumbnail_url = Column(Text, nullable=True)
    public = Column(Boolean, nullable=False, default=False, index=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False, index=True)


def make_engine(url: str) -> Engine:
    if url.startswith("sqlite:///"):
        db_path = url[len("sqlite:///") :]
        if db_path and db_path != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        # Handlers run in FastAPI's threadpool.
        return create_engine(url, connect_args={"check_same_thread": False}, future=True)
    return create_engine(url, pool_pre_ping=True, pool_recycle=3600, future=True)


def make_sessionmaker(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False, future=True)


def init_db(engine: Engine) -> None:
    Base.metadata.create_all(bind=engine)
