# SPDX-License-Identifier: Apache-2.0

"""
Deadline alert endpoints.
"""

from datetime import date

from flask import request, jsonify, current_app
from flask_openapi3 import APIBlueprint, Tag
from opentelemetry import trace
import logging

from models.requests import DeadlineScanRequest

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

alerts_tag = Tag(name="Alerts", description="Deadline monitoring")
alerts_bp = APIBlueprint(
    'alerts',
    __name__,
    url_prefix='/api/alerts',
    abp_tags=[alerts_tag]
)


@alerts_bp.post('/deadline-scan')
def trigger_deadline_scan():
    """
    Scan open cases and request an alert for each one near its deadline.

    The body is optional; ``referenceDate`` defaults to today.
    """
    with tracer.start_as_current_span("alerts.deadline_scan"):
        body = request.get_json(silent=True)
        if not isinstance(body, dict):
            body = {}
        scan_request = DeadlineScanRequest(**body)
        reference_date = scan_request.reference_date or date.today()

        result = current_app.deadline_monitor.scan_and_alert(reference_date)

        base_url = current_app.config['BASE_URL']
        response = result.to_dict()
        response["_links"] = {
            "self": {"href": f"{base_url}/api/alerts/deadline-scan", "method": "POST"},
            "cases": {"href": f"{base_url}/api/cases"}
        }
        return jsonify(response), 200
