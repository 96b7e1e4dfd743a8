"""Tests for API routes."""

import pytest
from fastapi.testclient import TestClient

from bookingmapper.api import create_app
from bookingmapper.mapping import TemplateStorage

HEADERS = [
    "Confirmation Code",
    "Guest",
    "Check-in Date",
    "Nights",
    "Channel",
    "Listing",
    "Rate",
    "Cleaning",
    "Revenue",
]


def make_row(code: str, listing: str, channel: str = "Airbnb") -> list[str]:
    return [code, "Jane Doe", "2024-03-15", "3", channel, listing, "100", "50", "300"]


FIELD_MAPPINGS = {
    "ALL": {
        "reservation_code": "Confirmation Code",
        "guest_name": "Guest",
        "check_in_date": "Check-in Date",
        "num_nights": "Nights",
        "platform": "Channel",
        "listing_name": "Listing",
        "nightly_rate": "Rate",
        "cleaning_fee": "Cleaning",
        "total_payout": "Revenue",
    },
    "airbnb": {"nightly_rate": "Rate*0.97"},
}

CATALOG = {
    "headers": HEADERS,
    "rows": [
        make_row("LH-0", "Lake House"),
        make_row("LH-1", "Lake House"),
        make_row("CM-0", "Casa Madera", channel="Booking.com"),
    ],
    "source_name": "bookings.csv",
}


@pytest.fixture
def client(tmp_path, monkeypatch):
    """Test client with template storage in a temporary database."""
    monkeypatch.setattr(
        "bookingmapper.api.app._template_storage", TemplateStorage(tmp_path / "templates.db")
    )
    with TestClient(create_app()) as test_client:
        yield test_client


class TestHealthEndpoint:
    """Test the /api/health endpoint."""

    def test_health(self, client):
        response = client.get("/api/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert data["service"] == "booking-mapper"
        assert "booking_api_token_present" in data["config"]


class TestMappingEndpoints:
    """Test resolve, classify and validate."""

    def test_resolve(self, client):
        response = client.post(
            "/api/mapping/resolve", json={"field_mappings": FIELD_MAPPINGS, "platform": "airbnb"}
        )
        assert response.status_code == 200
        rules = {r["booking_field"]: r["source_expression"] for r in response.json()["rules"]}
        assert rules["nightly_rate"] == "Rate*0.97"
        assert rules["guest_name"] == "Guest"

    def test_resolve_unknown_platform(self, client):
        response = client.post(
            "/api/mapping/resolve", json={"field_mappings": FIELD_MAPPINGS, "platform": "myspace"}
        )
        assert response.status_code == 400

    def test_unknown_bucket_rejected(self, client):
        response = client.post(
            "/api/mapping/resolve", json={"field_mappings": {"nowhere": {"a": "b"}}}
        )
        assert response.status_code == 400

    def test_classify(self, client):
        response = client.post(
            "/api/mapping/classify", json={"field_mappings": FIELD_MAPPINGS, "catalog": CATALOG}
        )
        assert response.status_code == 200
        data = response.json()
        assert data["platforms"] == ["airbnb", "airbnb", "booking"]
        assert data["platform_counts"] == {"airbnb": 2, "booking": 1}

    def test_validate(self, client):
        response = client.post(
            "/api/mapping/validate", json={"field_mappings": FIELD_MAPPINGS, "catalog": CATALOG}
        )
        assert response.status_code == 200
        data = response.json()
        assert data["is_valid"] is True
        assert data["template"]["is_valid"] is True
        assert "Airbnb Template" in data["suggested_names"]

    def test_validate_missing_fields(self, client):
        response = client.post(
            "/api/mapping/validate", json={"field_mappings": {"ALL": {"guest_name": "Guest"}}}
        )
        data = response.json()
        assert data["is_valid"] is False
        assert "reservation_code" in data["missing_required_fields"]


class TestEvaluateEndpoint:
    """Test the /api/evaluate endpoint."""

    def test_direct_reference(self, client):
        response = client.post(
            "/api/evaluate",
            json={"expression": "Rate", "headers": ["Rate"], "row": ["120"]},
        )
        assert response.json() == {"value": 120, "status": "direct", "message": None}

    def test_formula_with_derived_field(self, client):
        response = client.post(
            "/api/evaluate",
            json={
                "expression": "Rate - mgmt_fee",
                "headers": ["Rate"],
                "row": ["120"],
                "derived": {"mgmt_fee": 20},
            },
        )
        data = response.json()
        assert data["value"] == 100
        assert data["status"] == "computed"

    def test_unsafe_formula(self, client):
        response = client.post(
            "/api/evaluate",
            json={"expression": "__import__('os')", "headers": ["Rate"], "row": ["1"]},
        )
        assert response.json()["status"] == "unevaluated"


class TestDeriveEndpoint:
    """Test the /api/derive endpoint."""

    def test_derive(self, client):
        response = client.post(
            "/api/derive", json={"field_mappings": FIELD_MAPPINGS, "catalog": CATALOG}
        )
        assert response.status_code == 200
        data = response.json()
        assert data["total_drafts"] == 3
        assert data["listing_counts"] == {"Lake House": 2, "Casa Madera": 1}
        assert data["platform_counts"] == {"airbnb": 2, "booking": 1}
        assert data["flagged_rows"] == []
        assert data["groups"]["Lake House"][0]["fields"]["nightly_rate"] == 97
        assert data["groups"]["Casa Madera"][0]["fields"]["nightly_rate"] == 100
        assert [m["listing_name"] for m in data["listings"]] == ["Lake House", "Casa Madera"]

    def test_derive_per_property(self, client):
        property_mappings = {"ALL": dict(FIELD_MAPPINGS["ALL"], total_payout="Revenue * 2")}
        response = client.post(
            "/api/derive",
            json={
                "field_mappings": FIELD_MAPPINGS,
                "catalog": CATALOG,
                "property_field_mappings": {"prop-casa": property_mappings},
                "property_mappings": [
                    {"listing_name": "Casa Madera", "property_id": "prop-casa"}
                ],
            },
        )
        data = response.json()
        assert data["groups"]["Casa Madera"][0]["fields"]["total_payout"] == 600
        assert data["groups"]["Casa Madera"][0]["property_id"] == "prop-casa"
        assert data["groups"]["Lake House"][0]["fields"]["total_payout"] == 300

    def test_derive_rejects_invalid_mapping(self, client):
        mappings = {"ALL": {"guest_name": "Guest"}}
        response = client.post("/api/derive", json={"field_mappings": mappings, "catalog": CATALOG})
        assert response.status_code == 400
        assert "reservation_code" in response.json()["detail"]


class TestEditEndpoints:
    """Test applying and correlating edits."""

    def _drafts(self, client):
        response = client.post(
            "/api/derive", json={"field_mappings": FIELD_MAPPINGS, "catalog": CATALOG}
        )
        groups = response.json()["groups"]
        return sorted(
            [draft for drafts in groups.values() for draft in drafts],
            key=lambda draft: draft["row_index"],
        )

    def test_apply_edit(self, client):
        drafts = self._drafts(client)
        response = client.post(
            "/api/edits/apply",
            json={
                "drafts": drafts,
                "edit": {
                    "row_index": 1,
                    "field_name": "cleaning_fee",
                    "original_value": "50",
                    "new_value": "65",
                },
            },
        )
        assert response.status_code == 200
        edited = response.json()["drafts"]
        assert edited[1]["fields"]["cleaning_fee"] == 65
        assert edited[0]["fields"]["cleaning_fee"] == 50

    def test_apply_edit_rejected(self, client):
        drafts = self._drafts(client)
        response = client.post(
            "/api/edits/apply",
            json={
                "drafts": drafts,
                "edit": {
                    "row_index": 0,
                    "field_name": "guest_name",
                    "original_value": "Jane Doe",
                    "new_value": "John",
                },
            },
        )
        assert response.status_code == 400

    def test_correlate(self, client):
        response = client.post(
            "/api/edits/correlate",
            json={
                "edits": [
                    {
                        "row_index": 0,
                        "field_name": "gst",
                        "original_value": "",
                        "new_value": "5",
                        "reason": "Missing",
                    },
                    {
                        "row_index": 1,
                        "field_name": "gst",
                        "original_value": "",
                        "new_value": "5",
                    },
                ],
                "sent_payloads": [
                    {"reservation_code": "LH-0"},
                    {"reservation_code": "LH-1"},
                ],
                "created_records": [{"id": "b0", "reservationCode": "lh-0"}],
                "user_id": "user-1",
            },
        )
        assert response.status_code == 200
        data = response.json()
        assert len(data["applied"]) == 1
        assert len(data["unmatched"]) == 1
        assert data["audit_payloads"][0]["bookingId"] == "b0"
        assert data["audit_payloads"][0]["changeReason"] == "Missing"


class TestTemplateEndpoints:
    """Test template storage endpoints."""

    def _create(self, client, name="Airbnb Export", property_id="prop-1", is_default=False):
        response = client.post(
            "/api/templates",
            json={
                "property_id": property_id,
                "mapping_name": name,
                "field_mappings": FIELD_MAPPINGS,
                "user_id": "user-1",
                "is_default": is_default,
            },
        )
        assert response.status_code == 200
        return response.json()["template"]

    def test_create_and_get(self, client):
        created = self._create(client)
        assert created["id"]
        assert created["field_mappings"]["airbnb"] == {"nightly_rate": "Rate*0.97"}
        assert created["field_mappings"]["vrbo"] == {}

        response = client.get(f"/api/templates/{created['id']}")
        assert response.status_code == 200
        assert response.json()["mapping_name"] == "Airbnb Export"

    def test_create_missing_required(self, client):
        response = client.post(
            "/api/templates",
            json={
                "property_id": "prop-1",
                "mapping_name": "Partial",
                "field_mappings": {"ALL": {"guest_name": "Guest"}},
            },
        )
        assert response.status_code == 400
        assert "Missing required fields" in response.json()["detail"]

    def test_list_and_filter(self, client):
        self._create(client, "One", "prop-1")
        self._create(client, "Two", "prop-2")

        all_templates = client.get("/api/templates").json()["templates"]
        assert [t["mapping_name"] for t in all_templates] == ["One", "Two"]

        filtered = client.get("/api/templates", params={"property_id": "prop-2"}).json()
        assert [t["mapping_name"] for t in filtered["templates"]] == ["Two"]

    def test_default_template(self, client):
        response = client.get("/api/templates/property/prop-1/default")
        assert response.status_code == 404

        first = self._create(client, "First", is_default=True)
        second = self._create(client, "Second")
        assert client.get("/api/templates/property/prop-1/default").json()["id"] == first["id"]

        response = client.put(f"/api/templates/{second['id']}/default")
        assert response.status_code == 200
        assert response.json()["is_default"] is True
        assert client.get("/api/templates/property/prop-1/default").json()["id"] == second["id"]

    def test_stats(self, client):
        self._create(client, "One", is_default=True)
        self._create(client, "Two", "prop-2")

        data = client.get("/api/templates/stats").json()
        assert data["total_templates"] == 2
        assert data["default_templates"] == 1
        assert data["templates_with_platform_overrides"] == 2
        assert data["most_used_platforms"] == [{"platform": "airbnb", "count": 2}]

    def test_delete(self, client):
        created = self._create(client)
        response = client.delete(f"/api/templates/{created['id']}")
        assert response.status_code == 200

        assert client.get(f"/api/templates/{created['id']}").status_code == 404
        assert client.delete(f"/api/templates/{created['id']}").status_code == 404

    def test_unknown_template(self, client):
        assert client.get("/api/templates/missing").status_code == 404
        assert client.put("/api/templates/missing/default").status_code == 404
