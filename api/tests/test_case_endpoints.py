# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Integration tests for case and alert endpoints.

The app runs against the in-memory store, ledger and notifier from conftest.
"""

import io
import logging
from datetime import date, timedelta
from bson import ObjectId


def create_case(client, **overrides):
    payload = {"radicado": "2024-00001", "subject": "Solicitud de informacion"}
    payload.update(overrides)
    response = client.post('/api/cases', json=payload)
    assert response.status_code == 201, response.get_json()
    return response.get_json()


class TestCreateCase:

    def test_create_with_category(self, client):
        data = create_case(client, category="QUEJA", filingDate="2024-03-01", responseDeadline="2024-03-15")

        assert data["category"] == "QUEJA"
        assert data["state"] == "Pendiente"
        assert data["filingDate"] == "2024-03-01"
        assert data["responseDeadline"] == "2024-03-15"
        assert data["intakeSource"] == "manual"
        assert data["_links"]["self"]["href"].endswith(f"/api/cases/{data['id']}")
        assert data["_links"]["update_state"]["method"] == "PUT"

    def test_create_derives_category(self, client):
        data = create_case(client, subject="Queja por la demora")
        assert data["category"] == "QUEJA"

    def test_snake_case_keys_accepted(self, client):
        data = create_case(client, requester_name="Ana Perez")
        assert data["requesterName"] == "Ana Perez"

    def test_missing_radicado(self, client):
        response = client.post('/api/cases', json={"subject": "Queja"})

        assert response.status_code == 400
        body = response.get_json()
        assert body["status"] == 400
        assert body["type"].endswith("invalid-input")
        assert any("radicado" in e for e in body["errors"])

    def test_error_log_carries_request_fields(self, client, caplog):
        with caplog.at_level(logging.WARNING, logger="middleware.error_handler"):
            client.post('/api/cases', json={"subject": "Queja"})

        record = next(r for r in caplog.records if r.name == "middleware.error_handler")
        assert record.extra_fields["path"] == "/api/cases"
        assert record.extra_fields["method"] == "POST"
        assert record.extra_fields["status_code"] == 400

    def test_invalid_date(self, client):
        response = client.post('/api/cases', json={
            "radicado": "R-1", "subject": "Queja", "responseDeadline": "15 de marzo"
        })
        assert response.status_code == 400

    def test_missing_body(self, client):
        response = client.post('/api/cases', data="not json", content_type='text/plain')
        assert response.status_code == 400

    def test_duplicate_radicado(self, client):
        create_case(client, radicado="DUP-1")
        response = client.post('/api/cases', json={"radicado": "DUP-1", "subject": "otra"})

        assert response.status_code == 409
        assert response.get_json()["type"].endswith("resource-conflict")


class TestGetCase:

    def test_get_case(self, client):
        created = create_case(client)
        response = client.get(f"/api/cases/{created['id']}")

        assert response.status_code == 200
        assert response.get_json()["radicado"] == created["radicado"]

    def test_unknown_case(self, client):
        response = client.get(f"/api/cases/{ObjectId()}")

        assert response.status_code == 404
        body = response.get_json()
        assert body["type"].endswith("resource-not-found")
        assert "collection" in body["_links"]

    def test_list_cases(self, client):
        create_case(client, radicado="L-1")
        create_case(client, radicado="L-2")

        data = client.get('/api/cases').get_json()

        assert data["total"] == 2
        assert {c["radicado"] for c in data["_embedded"]["cases"]} == {"L-1", "L-2"}


class TestCaseLifecycle:

    def test_open_case_resolved_and_no_longer_alerted(self, client, notifier):
        tomorrow = (date.today() + timedelta(days=1)).isoformat()
        case = create_case(client, state="Abierto", responseDeadline=tomorrow)

        response = client.put(
            f"/api/cases/{case['id']}/state",
            json={"state": "Resuelta", "comments": "closed"}
        )

        assert response.status_code == 200
        data = response.get_json()
        assert data["state"] == "Resuelta"
        assert data["comments"] == "closed"
        assert data["historyEntry"]["previousState"] == "Abierto"
        assert data["notificationQueued"] is True

        history = client.get(f"/api/cases/{case['id']}/history").get_json()
        assert history["total"] == 1
        entry = history["_embedded"]["history"][0]
        assert (entry["previousState"], entry["newState"], entry["comments"]) == ("Abierto", "Resuelta", "closed")
        assert history["consistent"] is True

        scan = client.post('/api/alerts/deadline-scan', json={}).get_json()
        assert case["id"] not in scan["caseIds"]

    def test_blank_state_rejected(self, client):
        case = create_case(client)
        response = client.put(f"/api/cases/{case['id']}/state", json={"state": "  "})

        assert response.status_code == 400
        history = client.get(f"/api/cases/{case['id']}/history").get_json()
        assert history["total"] == 0

    def test_transition_unknown_case(self, client, history_ledger):
        response = client.put(f"/api/cases/{ObjectId()}/state", json={"state": "Resuelta"})

        assert response.status_code == 404
        assert history_ledger.all_entries == []

    def test_history_newest_first(self, client):
        case = create_case(client)
        for state in ("En tramite", "Resuelta"):
            client.put(f"/api/cases/{case['id']}/state", json={"state": state})

        entries = client.get(f"/api/cases/{case['id']}/history").get_json()["_embedded"]["history"]

        assert [e["newState"] for e in entries] == ["Resuelta", "En tramite"]

    def test_history_unknown_case(self, client):
        assert client.get(f"/api/cases/{ObjectId()}/history").status_code == 404

    def test_state_change_without_entry_is_inconsistent(self, client, case_store):
        case = create_case(client)
        assert case["initialState"] == "Pendiente"
        case_store.update_case_state(case["id"], "Resuelta", None)

        history = client.get(f"/api/cases/{case['id']}/history").get_json()

        assert history["total"] == 0
        assert history["consistent"] is False

    def test_notification_failure_still_commits(self, test_config, case_store, history_ledger, failing_notifier):
        from app import create_app
        from services.redis import AlertCooldown

        app = create_app(
            config=test_config,
            case_store=case_store,
            history_ledger=history_ledger,
            notifier=failing_notifier,
            alert_cooldown=AlertCooldown(None, 0)
        )
        with app.test_client() as client:
            case = create_case(client)
            response = client.put(f"/api/cases/{case['id']}/state", json={"state": "Resuelta"})

        assert response.status_code == 200
        assert response.get_json()["notificationQueued"] is False
        assert case_store.get_case(case["id"]).state == "Resuelta"


class TestClassification:

    def test_classify_only(self, client, case_store):
        response = client.post('/api/cases/classify', json={"subject": "Hay una irregularidad grave"})

        assert response.status_code == 200
        assert response.get_json() == {"subject": "Hay una irregularidad grave", "category": "DENUNCIA"}
        assert case_store.list_cases() == []

    def test_classify_empty_subject(self, client):
        response = client.post('/api/cases/classify', json={"subject": ""})
        assert response.get_json()["category"] == "OTROS"

    def test_classify_missing_subject(self, client):
        assert client.post('/api/cases/classify', json={}).status_code == 400

    def test_classify_and_create(self, client):
        response = client.post('/api/cases/classify-and-create', json={
            "radicado": "AC-1",
            "subject": "Hay una irregularidad grave",
            "category": "PETICION"
        })

        assert response.status_code == 201
        data = response.get_json()
        assert data["category"] == "DENUNCIA"
        assert data["intakeSource"] == "auto_classified"


class TestImport:

    def _upload(self, client, content, filename):
        return client.post(
            '/api/cases/import',
            data={"file": (io.BytesIO(content), filename)},
            content_type='multipart/form-data'
        )

    def test_csv_import_reports_rows(self, client):
        content = (
            "Radicado;Asunto;Fecha limite\n"
            "IMP-1;Queja por demora;2024-03-15\n"
            ";Sin radicado;\n"
            "IMP-3;Sugerencia de horario;\n"
        ).encode("utf-8")

        response = self._upload(client, content, "casos.csv")

        assert response.status_code == 200
        data = response.get_json()
        assert (data["total"], data["created"], data["failed"]) == (3, 2, 1)
        assert data["errors"][0]["row"] == 2
        assert len(data["caseIds"]) == 2

        listed = client.get('/api/cases').get_json()["_embedded"]["cases"]
        assert {c["category"] for c in listed} == {"QUEJA", "SUGERENCIA"}

    def test_missing_file(self, client):
        response = client.post('/api/cases/import', data={}, content_type='multipart/form-data')
        assert response.status_code == 400

    def test_unsupported_extension(self, client):
        response = self._upload(client, b"Radicado\nR-1\n", "casos.pdf")
        assert response.status_code == 400


class TestDeadlineScan:

    def test_scan_with_reference_date(self, client, notifier):
        create_case(client, radicado="D-1", responseDeadline="2024-03-10")
        create_case(client, radicado="D-2", responseDeadline="2024-03-12")
        create_case(client, radicado="D-3", responseDeadline="2024-03-20")

        response = client.post('/api/alerts/deadline-scan', json={"referenceDate": "2024-03-10"})

        assert response.status_code == 200
        data = response.get_json()
        assert data["matched"] == 2
        assert data["sent"] == 2
        assert data["referenceDate"] == "2024-03-10"
        assert len(notifier.sent) == 2

    def test_scan_without_body(self, client):
        response = client.post('/api/alerts/deadline-scan')

        assert response.status_code == 200
        assert response.get_json()["referenceDate"] == date.today().isoformat()

    def test_invalid_reference_date(self, client):
        response = client.post('/api/alerts/deadline-scan', json={"referenceDate": "ayer"})
        assert response.status_code == 400
