# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
MongoDB service layer with connection pooling, transactions and indexes.
"""

import os
import logging
from contextlib import contextmanager
from typing import Dict, Optional, Any, Iterator
from pymongo import MongoClient, ASCENDING, DESCENDING
from pymongo.client_session import ClientSession
from pymongo.collection import Collection
from pymongo.database import Database
from pymongo.errors import (
    ConnectionFailure,
    ServerSelectionTimeoutError,
    PyMongoError
)

from domain.errors import PersistenceError

logger = logging.getLogger(__name__)

CASES_COLLECTION = "cases"
HISTORY_COLLECTION = "case_history"


class MongoDBService:
    """MongoDB service with connection pooling and optional multi-document transactions."""

    def __init__(
        self,
        connection_string: str = None,
        database_name: str = None,
        transactions_enabled: Optional[bool] = None
    ):
        """Initialize MongoDB service; the connection is opened lazily."""
        self.connection_string = connection_string or os.getenv(
            'MONGODB_URI',
            'mongodb://localhost:27017/pqrs_dev'
        )
        self.database_name = database_name or os.getenv('MONGODB_DATABASE', 'pqrs_dev')
        if transactions_enabled is None:
            transactions_enabled = os.getenv('MONGODB_TRANSACTIONS', 'false').lower() == 'true'
        self.transactions_enabled = transactions_enabled
        self._client: Optional[MongoClient] = None
        self._database: Optional[Database] = None

        # Connection pool settings
        self.max_pool_size = int(os.getenv('MONGODB_MAX_POOL_SIZE', '10'))
        self.min_pool_size = int(os.getenv('MONGODB_MIN_POOL_SIZE', '1'))
        self.max_idle_time_ms = int(os.getenv('MONGODB_MAX_IDLE_TIME_MS', '30000'))
        self.server_selection_timeout_ms = int(os.getenv('MONGODB_SERVER_SELECTION_TIMEOUT_MS', '5000'))

        logger.info(
            f"MongoDB service initialized for database: {self.database_name} "
            f"(transactions {'on' if self.transactions_enabled else 'off'})"
        )

    @property
    def client(self) -> MongoClient:
        """Get MongoDB client with connection pooling."""
        if self._client is None:
            try:
                self._client = MongoClient(
                    self.connection_string,
                    maxPoolSize=self.max_pool_size,
                    minPoolSize=self.min_pool_size,
                    maxIdleTimeMS=self.max_idle_time_ms,
                    serverSelectionTimeoutMS=self.server_selection_timeout_ms,
                    tz_aware=True
                )
                # Test connection
                self._client.admin.command('ping')
                logger.info("MongoDB connection established successfully")
            except (ConnectionFailure, ServerSelectionTimeoutError) as e:
                self._client = None
                logger.error(f"Failed to connect to MongoDB: {e}")
                raise PersistenceError(f"Failed to connect to MongoDB: {e}")

        return self._client

    @property
    def database(self) -> Database:
        """Get MongoDB database."""
        if self._database is None:
            self._database = self.client[self.database_name]
        return self._database

    def get_collection(self, collection_name: str) -> Collection:
        """Get MongoDB collection."""
        return self.database[collection_name]

    def close_connection(self) -> None:
        """Close MongoDB connection."""
        if self._client:
            self._client.close()
            self._client = None
            self._database = None
            logger.info("MongoDB connection closed")

    @contextmanager
    def transaction(self) -> Iterator[Optional[ClientSession]]:
        """
        Unit of work spanning several collections.

        Yields a session bound to an open transaction when transactions are
        enabled (replica set required), otherwise None so that callers fall
        back to ordered single-document writes.
        """
        if not self.transactions_enabled:
            yield None
            return

        try:
            session = self.client.start_session()
        except PyMongoError as e:
            logger.error(f"Failed to start MongoDB session: {e}")
            raise PersistenceError(f"Failed to start transaction: {e}")

        try:
            with session.start_transaction():
                yield session
        except PyMongoError as e:
            logger.error(f"MongoDB transaction aborted: {e}")
            raise PersistenceError(f"Transaction aborted: {e}")
        finally:
            session.end_session()

    def health_check(self) -> Dict[str, Any]:
        """Check MongoDB connection health."""
        try:
            result = self.client.admin.command('ping')
            server_info = self.client.server_info()

            return {
                'status': 'healthy',
                'ping': result.get('ok') == 1,
                'version': server_info.get('version'),
                'database': self.database_name,
                'transactions_enabled': self.transactions_enabled
            }
        except Exception as e:
            logger.error(f"MongoDB health check failed: {e}")
            return {
                'status': 'unhealthy',
                'error': str(e),
                'database': self.database_name
            }

    # Index Management

    def create_indexes(self) -> None:
        """Create uniqueness and query indexes for the case collections."""
        try:
            logger.info("Creating MongoDB indexes...")

            cases = self.get_collection(CASES_COLLECTION)
            cases.create_index("radicado", unique=True)
            cases.create_index([("state", ASCENDING), ("responseDeadline", ASCENDING)])
            cases.create_index([("createdAt", DESCENDING)])

            history = self.get_collection(HISTORY_COLLECTION)
            history.create_index([("caseId", ASCENDING), ("changedAt", DESCENDING), ("_id", DESCENDING)])

            logger.info("MongoDB indexes created successfully")

        except PyMongoError as e:
            logger.error(f"Failed to create MongoDB indexes: {e}")
            raise PersistenceError(f"Failed to create indexes: {e}")


# Singleton instance for application use
_mongodb_service: Optional[MongoDBService] = None


def get_mongodb_service() -> MongoDBService:
    """Get singleton MongoDB service instance."""
    global _mongodb_service
    if _mongodb_service is None:
        _mongodb_service = MongoDBService()
    return _mongodb_service


def close_mongodb_connection() -> None:
    """Close MongoDB connection (for cleanup)."""
    global _mongodb_service
    if _mongodb_service:
        _mongodb_service.close_connection()
        _mongodb_service = None
