"""Database setup and configuration using SQLModel"""

from typing import Dict, Any, Optional
from sqlmodel import SQLModel, create_engine, Session, select, func
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool
from sqlalchemy import text
import os

from dochub.config import settings
from dochub.utils.logger import get_logger
from dochub.models.storage_entry import StorageEntry

logger = get_logger(__name__)

SQLITE_PRAGMAS = [
    # WAL lets several processes read while one writes
    "PRAGMA journal_mode=WAL",
    "PRAGMA synchronous=NORMAL",
    "PRAGMA temp_store=MEMORY",
]


def normalize_database_url(database_url: str) -> str:
    """Convert file:/relative SQLite URLs to SQLAlchemy form and create parent dirs"""
    if database_url.startswith("file:"):
        path = database_url.replace("file:", "")
    elif database_url.startswith("sqlite:///"):
        path = database_url.replace("sqlite:///", "")
        if path.startswith("./"):
            path = path[2:]
    else:
        return database_url

    if path == ":memory:":
        return "sqlite:///:memory:"

    db_dir = os.path.dirname(path)
    if db_dir and not os.path.exists(db_dir):
        os.makedirs(db_dir, exist_ok=True)
        logger.debug(f"Created database directory: {db_dir}")

    normalized_path = path.replace("\\", "/")
    return f"sqlite:///{normalized_path}"


class DatabaseService:
    """Database service backing the local key-value store"""

    def __init__(self, database_url: Optional[str] = None):
        self.database_url = database_url or settings.database_url
        self.engine: Optional[Engine] = None

    def initialize(self):
        """Initialize database connection and create tables"""
        try:
            database_url = normalize_database_url(self.database_url)
            logger.debug(f"Connecting to database: {database_url.split('/')[-1]}")

            if database_url == "sqlite:///:memory:":
                # A single shared connection, otherwise every session sees an empty database
                self.engine = create_engine(
                    database_url,
                    connect_args={"check_same_thread": False},
                    poolclass=StaticPool,
                    echo=False,
                )
            elif database_url.startswith("sqlite:///"):
                self.engine = create_engine(
                    database_url,
                    connect_args={"check_same_thread": False},
                    echo=False,
                    pool_pre_ping=True,
                )
                with self.engine.connect() as conn:
                    for pragma in SQLITE_PRAGMAS:
                        conn.exec_driver_sql(pragma)
                    conn.commit()
            else:
                self.engine = create_engine(
                    database_url,
                    echo=False,
                    pool_pre_ping=True,
                    pool_size=5,
                    max_overflow=10,
                    pool_recycle=3600,
                )

            SQLModel.metadata.create_all(self.engine)
            self._verify_database_integrity()

            logger.debug("Database initialized successfully")
        except Exception as e:
            logger.error(f"Failed to initialize database: {e}")
            raise

    def _verify_database_integrity(self):
        """Run SQLite integrity check and confirm the storage table exists"""
        if not self.engine or self.engine.dialect.name != "sqlite":
            return

        try:
            with self.engine.connect() as conn:
                integrity_status = conn.execute(text("PRAGMA integrity_check")).scalar()
                if integrity_status == "ok":
                    logger.debug("Database integrity check passed")
                else:
                    logger.warning(f"Database integrity check returned: {integrity_status}")

                tables_result = conn.execute(
                    text("SELECT name FROM sqlite_master WHERE type='table' AND name NOT LIKE 'sqlite_%'")
                )
                existing_tables = {row[0] for row in tables_result}
                if StorageEntry.__tablename__ not in existing_tables:
                    logger.warning(f"Storage table missing after create_all: {existing_tables}")
        except Exception as e:
            # Log but don't fail initialization if integrity check fails
            logger.warning(f"Database integrity check encountered an issue: {e}")

    def get_session(self) -> Session:
        """Get database session"""
        if not self.engine:
            raise RuntimeError("Database not initialized. Call initialize() first.")
        return Session(self.engine)

    async def health_check(self) -> bool:
        """Check database health"""
        try:
            with self.get_session() as session:
                session.exec(select(1)).first()
                return True
        except Exception as e:
            logger.error(f"Database health check failed: {e}")
            return False

    async def get_stats(self) -> Dict[str, Any]:
        """Get storage statistics"""
        try:
            with self.get_session() as session:
                keys = session.exec(select(func.count(StorageEntry.key))).one()
                total_bytes = session.exec(select(func.sum(func.length(StorageEntry.value)))).one()
                return {
                    "database": {
                        "stored_keys": keys or 0,
                        "stored_bytes": total_bytes or 0,
                    }
                }
        except Exception as e:
            logger.error(f"Failed to get database stats: {e}")
            return {"database": {}}

    def close(self):
        """Close database connection"""
        if self.engine:
            self.engine.dispose()
            self.engine = None
            logger.debug("Database connection closed")
