"""
Database session configuration
"""
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from screener.app.core.config import settings


def configure_sqlite(target_engine: Engine) -> None:
    """
    SQLite needs foreign_keys switched on per connection (ON DELETE CASCADE), and
    pysqlite's implicit BEGIN handling breaks SAVEPOINT; let SQLAlchemy emit BEGIN.
    """
    if target_engine.dialect.name != "sqlite":
        return

    @event.listens_for(target_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(target_engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")


_connect_args = {"check_same_thread": False} if settings.database_url.startswith("sqlite") else {}

engine = create_engine(settings.database_url, echo=False, connect_args=_connect_args)
configure_sqlite(engine)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
