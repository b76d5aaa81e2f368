# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Services package - Persistence, messaging and the case lifecycle services.
"""

from .mongodb import MongoDBService, get_mongodb_service, close_mongodb_connection
from .amqp import AMQPService, AMQPConfig, PublishResult, create_amqp_service
from .case_store import CaseStore
from .history import HistoryLedger, LedgerReconciliation
from .notifications import NotificationService, create_notification_service
from .lifecycle import LifecycleEngine, TransitionResult
from .deadlines import DeadlineMonitor, DeadlineScanResult
from .intake import CaseIntakeService, ImportReport

__all__ = [
    "MongoDBService",
    "get_mongodb_service",
    "close_mongodb_connection",
    "AMQPService",
    "AMQPConfig",
    "PublishResult",
    "create_amqp_service",
    "CaseStore",
    "HistoryLedger",
    "LedgerReconciliation",
    "NotificationService",
    "create_notification_service",
    "LifecycleEngine",
    "TransitionResult",
    "DeadlineMonitor",
    "DeadlineScanResult",
    "CaseIntakeService",
    "ImportReport"
]
