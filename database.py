"""
Database configuration module for the EcoWaste backend.
Handles SQLAlchemy engine setup, session management, and base model configuration.
Supports PostgreSQL (production) and SQLite (local/test) via the DATABASE_URL environment variable.
"""

import os
import logging
from dotenv import load_dotenv
from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

# Load environment variables from .env file
load_dotenv()

logger = logging.getLogger(__name__)

# Get database URL from environment variable
DATABASE_URL = os.getenv("DATABASE_URL")

if not DATABASE_URL:
    logger.error("DATABASE_URL environment variable is not set.")
    logger.error("Set DATABASE_URL in .env or in the deployment variables.")
    raise RuntimeError("DATABASE_URL is required.")


def _engine_options(url: str) -> dict:
    """
    Extra create_engine() arguments for the given database URL.

    SQLite connections are shared across FastAPI's worker threads, and an
    in-memory SQLite database only exists for as long as its single connection.
    """
    if not url.startswith("sqlite"):
        return {}
    options = {"connect_args": {"check_same_thread": False}}
    if url in ("sqlite://", "sqlite:///:memory:"):
        options["poolclass"] = StaticPool
    return options


# Create SQLAlchemy engine
engine = create_engine(DATABASE_URL, **_engine_options(DATABASE_URL))

# SessionLocal class will be used to create database sessions
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Base class for all ORM models
Base = declarative_base()


def get_db():
    """
    Dependency function that provides a database session.
    Ensures proper cleanup of database connections after each request.

    Yields:
        Session: SQLAlchemy database session
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
