# database/connection.py
"""
MySQL connection pool for the watcher's state backend

Only used when STATE_BACKEND=mysql. configure_pool() stores the DB settings;
the pool is created the first time a cursor is requested.
"""

import mysql.connector
from mysql.connector import pooling
from contextlib import contextmanager
import logging

logger = logging.getLogger(__name__)

POOL_NAME = "dayzwatcher_pool"
POOL_SIZE = 2

_connection_pool = None
_pool_config = None


def configure_pool(database_config: dict):
    """Remember connection settings and drop any pool built from older ones."""
    global _pool_config, _connection_pool
    _pool_config = dict(database_config)
    _connection_pool = None


def get_pool() -> pooling.MySQLConnectionPool:
    """Return the pool, creating it on first use."""
    global _connection_pool
    if _connection_pool is not None:
        return _connection_pool
    if _pool_config is None:
        raise RuntimeError("Database pool used before configure_pool()")

    try:
        _connection_pool = pooling.MySQLConnectionPool(
            pool_name=POOL_NAME,
            pool_size=POOL_SIZE,
            pool_reset_session=True,
            autocommit=False,
            **{key: _pool_config[key] for key in ('host', 'port', 'user', 'password', 'database')
               if key in _pool_config}
        )
    except mysql.connector.Error as err:
        logger.error(f"Cannot create MySQL pool for {_pool_config.get('host')}: {err}")
        raise

    logger.info(f"MySQL pool ready ({_pool_config.get('host')}/{_pool_config.get('database')})")
    return _connection_pool


@contextmanager
def get_cursor(dictionary=True):
    """
    Pooled cursor that commits when the block exits cleanly.

    Any mysql error rolls the transaction back and is re-raised; the connection
    always goes back to the pool.
    """
    conn = get_pool().get_connection()
    cursor = conn.cursor(dictionary=dictionary)
    try:
        yield cursor
        conn.commit()
    except mysql.connector.Error as err:
        logger.error(f"Query failed, rolling back: {err}")
        conn.rollback()
        raise
    finally:
        cursor.close()
        if conn.is_connected():
            conn.close()


def close_pool():
    """Forget the pool on shutdown; pooled connections close as they are released."""
    global _connection_pool
    if _connection_pool is not None:
        _connection_pool = None
        logger.info("MySQL pool released")
