"""
TaxPlanner AI - API Tests
=========================
Endpoint tests against an isolated in-memory service.
"""

import pytest
from datetime import date

from fastapi.testclient import TestClient

# Import modules to test
import os
import sys
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'backend'))

import main
from openai_client import AIClientConfig, TaxAIClient
from tax_planner import TaxPlanningService
from tax_planning_store import TaxPlanningStore


CLIENT_ID = "64f1c2a9e4b0a1b2c3d4e5f6"

CLIENT_RECORDS = {
    "clientId": CLIENT_ID,
    "advisorId": "adv-1",
    "client": {
        "firstName": "Asha",
        "lastName": "Menon",
        "email": "asha@example.com",
        "dateOfBirth": "1985-06-15",
        "maritalStatus": "married",
        "totalMonthlyIncome": 100000,
        "investments": {"fixedIncome": {"ppf": 50000, "epf": 30000}},
    },
}


@pytest.fixture
def service():
    return TaxPlanningService(
        store=TaxPlanningStore(),
        ai_client=TaxAIClient(AIClientConfig(api_key=None)),
        today=date(2026, 10, 18),
    )


@pytest.fixture
def client(service):
    main.app.dependency_overrides[main.get_service] = lambda: service
    yield TestClient(main.app)
    main.app.dependency_overrides.clear()


@pytest.fixture
def registered(client):
    response = client.post("/api/clients", json=CLIENT_RECORDS)
    assert response.status_code == 201
    return client


class TestInfoEndpoints:
    """Test root, health and reference endpoints."""

    def test_root(self, client):
        response = client.get("/")
        assert response.status_code == 200
        assert response.json()["name"] == "TaxPlanner AI"

    def test_health(self, client):
        data = client.get("/api/health").json()
        assert data["status"] == "healthy"
        assert data["ai_connected"] is False

    def test_slabs_for_band(self, client):
        data = client.get("/api/reference/slabs", params={"age_band": "super_senior_citizen"}).json()
        assert data["slabs"][0] == {"from": 0, "to": 500000, "rate": 0.0}
        assert data["slabs"][-1]["to"] == "unlimited"

    def test_slabs_invalid_band(self, client):
        assert client.get("/api/reference/slabs", params={"age_band": "teen"}).status_code == 400

    def test_deduction_limits(self, client):
        data = client.get("/api/reference/deduction-limits").json()
        assert data["sections"]["80CCD(1B)"] == 50000
        assert data["total_ceiling"] == 225000

    def test_calculate(self, client):
        response = client.post("/api/reference/calculate", json={"taxableIncome": 1200000})
        data = response.json()
        assert response.status_code == 200
        assert data["totalTaxLiability"] == 192400
        assert data["rebate87A"] == 0

        top_slab = data["slabs"][-1]
        assert set(top_slab) == {"slabStart", "slabEnd", "rate", "incomeInSlab", "taxInSlab"}
        assert top_slab["slabStart"] == 1000000
        assert top_slab["incomeInSlab"] == 200000

    def test_calculate_rejects_negative_income(self, client):
        response = client.post("/api/reference/calculate", json={"taxableIncome": -1})
        assert response.status_code == 422


class TestTaxPlanningEndpoints:
    """Test the planning workflow over HTTP."""

    def test_unknown_client(self, client):
        response = client.get("/api/tax-planning/client/missing")
        assert response.status_code == 404

    def test_planning_data(self, registered):
        data = registered.get(f"/api/tax-planning/client/{CLIENT_ID}").json()
        assert data["clientInfo"]["name"] == "Asha Menon"
        assert data["taxPlanningData"]["incomeAnalysis"]["totalMonthlyIncome"] == 100000
        assert data["existingTaxPlanning"] is None

    def test_other_advisor_gets_404(self, registered):
        response = registered.get(
            f"/api/tax-planning/client/{CLIENT_ID}", headers={"X-Advisor-Id": "adv-2"}
        )
        assert response.status_code == 404

    def test_other_advisor_cannot_overwrite_client(self, registered):
        hijack = {**CLIENT_RECORDS, "advisorId": "adv-2", "client": {"firstName": "Mallory"}}
        response = registered.post("/api/clients", json=hijack, headers={"X-Advisor-Id": "adv-2"})
        assert response.status_code == 404

        data = registered.get(f"/api/tax-planning/client/{CLIENT_ID}").json()
        assert data["clientInfo"]["name"] == "Asha Menon"

    def test_owner_can_update_client(self, registered):
        response = registered.post("/api/clients", json=CLIENT_RECORDS, headers={"X-Advisor-Id": "adv-1"})
        assert response.status_code == 201

    def test_ai_recommendations_fall_back(self, registered):
        response = registered.post(
            f"/api/tax-planning/client/{CLIENT_ID}/ai-recommendations", json={"taxYear": "2026"}
        )
        assert response.status_code == 200

        data = response.json()
        ai_set = data["taxPlanning"]["aiRecommendations"]
        assert ai_set["source"] == "fallback"
        assert ai_set["apiError"] is True
        assert data["warning"]["type"] == "api_error"
        assert set(data["visualizationData"]["charts"]) == {
            "taxLiabilityComparison", "deductionUtilization", "savingsBreakdown", "implementationTimeline",
        }
        comparison = data["visualizationData"]["beforeAfterComparison"]
        assert comparison["current"]["totalTaxLiability"] >= comparison["optimized"]["totalTaxLiability"]

    def test_ai_recommendations_without_body(self, registered):
        response = registered.post(f"/api/tax-planning/client/{CLIENT_ID}/ai-recommendations")
        assert response.status_code == 200
        assert response.json()["taxPlanning"]["taxYear"] == "2026"

    def test_manual_inputs_required(self, registered):
        response = registered.post(
            f"/api/tax-planning/client/{CLIENT_ID}/manual-inputs", json={"taxYear": "2026"}
        )
        assert response.status_code == 400

    def test_manual_inputs_saved(self, registered):
        response = registered.post(
            f"/api/tax-planning/client/{CLIENT_ID}/manual-inputs",
            json={
                "taxYear": "2026",
                "manualInputs": {
                    "recommendations": [{"title": "Collect rent receipts", "potentialSavings": "5000"}],
                    "notes": "Follow up in January",
                },
            },
        )
        assert response.status_code == 200

        record = response.json()["taxPlanning"]
        assert record["manualAdvisorInputs"]["notes"] == "Follow up in January"
        assert record["manualAdvisorInputs"]["recommendations"][0]["potentialSavings"] == 5000

    def test_history(self, registered):
        for year in ("2025", "2026"):
            registered.post(
                f"/api/tax-planning/client/{CLIENT_ID}/ai-recommendations", json={"taxYear": year}
            )
        data = registered.get(f"/api/tax-planning/client/{CLIENT_ID}/history").json()
        assert [record["taxYear"] for record in data["taxPlanningHistory"]] == ["2026", "2025"]

    def test_diagnostics_for_unknown_client(self, client):
        response = client.get("/api/tax-planning/client/unknown-client/diagnostics")
        assert response.status_code == 200
        data = response.json()
        assert data["clientFound"] is False
        assert data["summary"]["overallHealth"] == "critical"

    def test_diagnostics_for_registered_client(self, registered):
        data = registered.get(f"/api/tax-planning/client/{CLIENT_ID}/diagnostics").json()
        assert data["clientFound"] is True
        assert data["recordSources"]["client"] is True
