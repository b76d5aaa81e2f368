"""
PQRS Case Tracker API - Flask Application Entry Point

This module builds the Flask application with OpenAPI 3.0 support, reads the
environment configuration, wires the case lifecycle services and registers
the HTTP routes.
"""

import os
from contextlib import nullcontext
from typing import Any, Dict, Optional
from flask import jsonify
from flask_openapi3 import OpenAPI, Info, Tag
from observability.config import setup_observability
from observability.middleware import add_observability_middleware

from middleware.error_handler import register_error_handlers
from models.enums import DEFAULT_DEADLINE_THRESHOLD_DAYS, DEFAULT_INITIAL_STATE, RESOLVED_STATE
from services.mongodb import MongoDBService
from services.case_store import CaseStore
from services.history import HistoryLedger
from services.notifications import NotificationService, create_notification_service
from services.redis import AlertCooldown, create_alert_cooldown
from services.rules import load_rules
from services.intake import CaseIntakeService
from services.lifecycle import LifecycleEngine
from services.deadlines import DeadlineMonitor
from services.health import HealthCheckService

# Initialize observability first
setup_observability()

# OpenAPI info
info = Info(
    title="PQRS Case Tracker API",
    version="1.0.0",
    description="Intake, lifecycle, audit history and deadline alerts for citizen PQRS cases"
)

# API tags for organization
tags = [
    Tag(name="Cases", description="PQRS case intake, lifecycle and history"),
    Tag(name="Alerts", description="Deadline monitoring"),
    Tag(name="Health", description="System health and status")
]


def load_config() -> Dict[str, Any]:
    """Application configuration from environment variables."""
    environment = os.getenv('ENVIRONMENT', 'development')
    return {
        'ENVIRONMENT': environment,
        'DEBUG': environment == 'development',
        'DOCS_ENABLED': os.getenv('DOCS_ENABLED', 'true').lower() == 'true',
        'OTEL_ENABLED': os.getenv('OTEL_ENABLED', 'true').lower() == 'true',

        # API configuration
        'BASE_URL': os.getenv('BASE_URL', 'http://localhost:5000'),

        # Database configuration
        'MONGODB_URI': os.getenv('MONGODB_URI', 'mongodb://localhost:27017/pqrs_dev'),
        'MONGODB_DATABASE': os.getenv('MONGODB_DATABASE', 'pqrs_dev'),
        'MONGODB_TRANSACTIONS': os.getenv('MONGODB_TRANSACTIONS', 'false').lower() == 'true',

        # Notification configuration
        'PQRS_NOTIFICATION_RECIPIENT': os.getenv('PQRS_NOTIFICATION_RECIPIENT', ''),

        # Case lifecycle configuration
        'PQRS_RULES_FILE': os.getenv('PQRS_RULES_FILE', ''),
        'CASE_INITIAL_STATE': os.getenv('CASE_INITIAL_STATE', DEFAULT_INITIAL_STATE),
        'DEADLINE_THRESHOLD_DAYS': int(os.getenv('DEADLINE_THRESHOLD_DAYS', str(DEFAULT_DEADLINE_THRESHOLD_DAYS))),
        'RESOLVED_STATE': os.getenv('RESOLVED_STATE', RESOLVED_STATE),
        'ALERT_COOLDOWN_HOURS': float(os.getenv('ALERT_COOLDOWN_HOURS', '0')),
    }


def create_app(
    config: Optional[Dict[str, Any]] = None,
    mongodb_service: Optional[MongoDBService] = None,
    case_store: Optional[CaseStore] = None,
    history_ledger: Optional[HistoryLedger] = None,
    notifier: Optional[NotificationService] = None,
    alert_cooldown: Optional[AlertCooldown] = None
) -> OpenAPI:
    """
    Build the Flask application.

    Collaborators left as None are created from the configuration; tests
    pass in-memory replacements.
    """
    app = OpenAPI(__name__, info=info)
    app.config.update(load_config())
    app.config.update(config or {})

    rules = load_rules(app.config['PQRS_RULES_FILE'], app.config['CASE_INITIAL_STATE'])

    if mongodb_service is None and (case_store is None or history_ledger is None):
        mongodb_service = MongoDBService(
            app.config['MONGODB_URI'],
            app.config['MONGODB_DATABASE'],
            app.config['MONGODB_TRANSACTIONS']
        )
    if case_store is None:
        case_store = CaseStore(mongodb_service)
    if history_ledger is None:
        history_ledger = HistoryLedger(mongodb_service)

    if notifier is None:
        notifier = create_notification_service(app.config['PQRS_NOTIFICATION_RECIPIENT'])
    if alert_cooldown is None:
        alert_cooldown = create_alert_cooldown(app.config['ALERT_COOLDOWN_HOURS'])

    unit_of_work = mongodb_service.transaction if mongodb_service is not None else nullcontext

    # Make services available to routes
    app.mongodb_service = mongodb_service
    app.case_store = case_store
    app.history_ledger = history_ledger
    app.notifier = notifier
    app.transition_policy = rules.policy
    app.intake_service = CaseIntakeService(case_store, rules.rule_set, rules.policy)
    app.lifecycle_engine = LifecycleEngine(
        case_store,
        history_ledger,
        notifier=notifier,
        policy=rules.policy,
        unit_of_work=unit_of_work
    )
    app.deadline_monitor = DeadlineMonitor(
        case_store,
        notifier,
        threshold_days=app.config['DEADLINE_THRESHOLD_DAYS'],
        excluded_state=app.config['RESOLVED_STATE'],
        cooldown=alert_cooldown
    )
    health_service = HealthCheckService(
        mongodb_service,
        redis_service=alert_cooldown.redis_service,
        amqp_service=getattr(notifier, 'amqp_service', None)
    )

    add_observability_middleware(app, instrument=app.config['OTEL_ENABLED'])
    app.hal_formatter = register_error_handlers(app, app.config['BASE_URL'])

    # Register routes
    from routes.cases import cases_bp
    from routes.alerts import alerts_bp

    app.register_api(cases_bp)
    app.register_api(alerts_bp)

    @app.get('/api/healthz', tags=[tags[2]])
    def health_check():
        """Dependency health; 503 when MongoDB is unreachable."""
        health_data = health_service.get_health()
        status_code = 503 if health_data["status"] == "unhealthy" else 200
        health_data["features"] = {
            "docs_enabled": app.config["DOCS_ENABLED"],
            "otel_enabled": app.config["OTEL_ENABLED"],
            "transactions_enabled": app.config["MONGODB_TRANSACTIONS"],
            "transitions_constrained": rules.policy.is_constrained
        }
        health_data["_links"] = {"self": {"href": f"{app.config['BASE_URL']}/api/healthz"}}
        return jsonify(health_data), status_code

    return app


if __name__ == '__main__':
    # Development server
    application = create_app()
    application.run(
        host='0.0.0.0',
        port=int(os.getenv('PORT', 5000)),
        debug=application.config['DEBUG']
    )
