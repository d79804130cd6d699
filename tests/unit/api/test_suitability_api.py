import json
from decimal import Decimal

from fastapi.testclient import TestClient

import src.api.routers.advisory_config as advisory_config
from src.api.main import app
from tests.factories import StubBehavioralAnalyzer, analysis, default_responses

client = TestClient(app)

CLIENT = {
    "client_id": "cl_api",
    "first_name": "Grace",
    "last_name": "Hopper",
    "email": "grace@example.com",
    "dob": "1980-01-01",
    "annual_income": "150000",
    "net_worth": "900000",
    "liquidity_needs": "20000",
    "tax_bracket": "35",
}


def _with_analyzer(monkeypatch, reliability: int = 80):
    monkeypatch.setattr(
        advisory_config,
        "build_behavioral_analyzer",
        lambda: StubBehavioralAnalyzer(result=analysis(reliability=reliability)),
    )


def _target(asset_class: str, percent: str) -> dict:
    target = Decimal(percent)
    return {
        "asset_class": asset_class,
        "target_percent": percent,
        "lower_band": str(target - 5),
        "upper_band": str(target + 5),
    }


def _submit(letter: str = "b", headers=None):
    return client.post(
        "/assessments",
        json={
            "client": CLIENT,
            "questionnaire_version": "v1",
            "responses": [item.model_dump() for item in default_responses(letter)],
        },
        headers=headers or {},
    )


def _eligible_ips(monkeypatch) -> dict:
    _with_analyzer(monkeypatch)
    assessment = _submit("b").json()
    client.post(f"/assessments/{assessment['assessment_id']}/finalize", json={})
    response = client.post("/ips", json={"assessment_id": assessment["assessment_id"]})
    assert response.status_code == 201
    return response.json()


def test_health_endpoints_and_correlation_headers():
    response = client.get("/health", headers={"X-Correlation-Id": "corr-test-1"})

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}
    assert response.headers["X-Correlation-Id"] == "corr-test-1"
    assert response.headers["X-Request-Id"].startswith("req_")
    assert client.get("/health/live").json() == {"status": "live"}
    assert client.get("/health/ready").json() == {"status": "ready"}
    assert client.get("/metrics").status_code == 200


def test_questionnaire_is_served_in_order_with_fallback_version():
    response = client.get("/questionnaires/v7")

    assert response.status_code == 200
    body = response.json()
    assert body["version"] == "v1"
    assert [q["question_id"] for q in body["questions"]] == ["q1", "q2", "q3", "q4", "q5", "q6"]
    assert body["questions"][0]["category"] == "ABILITY"
    assert body["questions"][0]["time_horizon"] is True


def test_assessment_submission_without_analyzer_records_fallback():
    response = _submit("b")

    assert response.status_code == 201
    body = response.json()
    assert body["suitability"]["risk_category"] == "Moderate"
    assert body["confidence"]["analysis_source"] == "FALLBACK"
    assert Decimal(body["confidence"]["final_confidence"]) == Decimal("50")

    eligibility = client.get(f"/assessments/{body['assessment_id']}/eligibility").json()
    assert eligibility["eligible"] is False
    assert eligibility["blockers"] == ["ASSESSMENT_NOT_FINALIZED", "CONFIDENCE_BELOW_THRESHOLD"]


def test_assessment_idempotency_replay_and_conflict():
    headers = {"Idempotency-Key": "api-idem-1"}
    first = _submit("c", headers)
    replay = _submit("c", headers)
    conflict = _submit("b", headers)

    assert replay.json()["assessment_id"] == first.json()["assessment_id"]
    assert conflict.status_code == 409
    assert conflict.json()["detail"].startswith("IDEMPOTENCY_KEY_CONFLICT")


def test_incomplete_submission_is_unprocessable():
    response = client.post(
        "/assessments",
        json={
            "client": CLIENT,
            "questionnaire_version": "v1",
            "responses": [{"question_id": "q1", "selected_option_id": "q1_a"}],
        },
    )

    assert response.status_code == 422
    assert response.json()["detail"].startswith("INCOMPLETE_RESPONSE_SET")


def test_review_lifecycle_endpoints(monkeypatch):
    _with_analyzer(monkeypatch)
    assessment_id = _submit("d").json()["assessment_id"]

    missing_reason = client.post(
        f"/assessments/{assessment_id}/override",
        json={"override_category": "Moderate", "override_reason": ""},
    )
    assert missing_reason.status_code == 422
    assert missing_reason.json()["detail"] == "OVERRIDE_REASON_REQUIRED"

    overridden = client.post(
        f"/assessments/{assessment_id}/override",
        json={"override_category": "Moderate", "override_reason": "Near-term house purchase."},
    ).json()
    assert overridden["suitability"]["risk_category"] == "Aggressive"
    assert overridden["override_category"] == "Moderate"

    rejected = client.post(f"/assessments/{assessment_id}/reject", json={}).json()
    assert rejected["status"] == "REJECTED"

    finalize = client.post(f"/assessments/{assessment_id}/finalize", json={})
    assert finalize.status_code == 409
    assert finalize.json()["detail"] == "ASSESSMENT_REJECTED"

    history = client.get("/clients/cl_api/assessments").json()
    assert [item["assessment_id"] for item in history["items"]] == [assessment_id]


def test_missing_records_return_not_found():
    assert client.get("/assessments/ra_missing").json()["detail"] == "ASSESSMENT_NOT_FOUND"
    assert client.get("/ips/ips_missing").status_code == 404
    assert client.get("/clients/cl_none/ips").status_code == 404
    assert client.get("/portfolios/pf_missing").json()["detail"] == "PORTFOLIO_NOT_FOUND"


def test_ips_requires_eligible_assessment():
    assessment_id = _submit("b").json()["assessment_id"]

    response = client.post("/ips", json={"assessment_id": assessment_id})

    assert response.status_code == 422
    assert response.json()["detail"].startswith("IPS_NOT_ELIGIBLE")


def test_ips_draft_and_allocation_update(monkeypatch):
    ips = _eligible_ips(monkeypatch)

    assert ips["risk_category"] == "Moderate"
    assert ips["allocation_source"] == "BASELINE"
    assert client.get("/clients/cl_api/ips").json()["ips_id"] == ips["ips_id"]

    rejected = client.put(
        f"/ips/{ips['ips_id']}/allocations",
        json={"target_allocations": [_target("Equity", "60")]},
    )
    assert rejected.status_code == 422
    assert rejected.json()["detail"].startswith("ALLOCATION_SUM_NOT_100")

    updated = client.put(
        f"/ips/{ips['ips_id']}/allocations",
        json={
            "target_allocations": [_target("Equity", "60"), _target("Debt", "40")],
            "rebalancing_frequency": "Annual",
        },
    )
    assert updated.status_code == 200
    assert updated.json()["rebalancing_frequency"] == "Annual"


def test_portfolio_construction_flow(monkeypatch):
    ips = _eligible_ips(monkeypatch)

    built = client.post(
        "/portfolios", json={"ips_id": ips["ips_id"], "total_investment": "100000"}
    )
    assert built.status_code == 201
    portfolio = built.json()
    portfolio_id = portfolio["portfolio_id"]
    assert Decimal(portfolio["cash_balance"]) == Decimal("0")
    assert Decimal(portfolio["total_investment_amount"]) == Decimal("100000")
    equity = next(h for h in portfolio["holdings"] if h["asset_class"] == "Equity")

    sold = client.request(
        "DELETE",
        f"/portfolios/{portfolio_id}/holdings/{equity['holding_id']}",
        params={"policy": "SELL"},
    ).json()
    assert Decimal(sold["cash_balance"]) == Decimal("50000")

    added = client.post(
        f"/portfolios/{portfolio_id}/holdings", json={"security_id": "sec_intl_developed"}
    ).json()
    new_holding = added["holdings"][-1]
    assert Decimal(new_holding["allocated_percent"]) == Decimal("0")

    edited = client.patch(
        f"/portfolios/{portfolio_id}/holdings/{new_holding['holding_id']}",
        json={"allocated_amount": "30000"},
    ).json()
    assert Decimal(edited["cash_balance"]) == Decimal("20000")

    overdrawn = client.patch(
        f"/portfolios/{portfolio_id}/holdings/{new_holding['holding_id']}",
        json={"allocated_percent": "80"},
    )
    assert overdrawn.status_code == 422
    assert overdrawn.json()["detail"].startswith("NEGATIVE_CASH_BALANCE")

    approved = client.post(f"/portfolios/{portfolio_id}/approve", json={}).json()
    assert approved["approval_status"] == "APPROVED"
    assert approved["client_approved"] is True


def test_portfolio_request_validation(monkeypatch):
    ips = _eligible_ips(monkeypatch)
    portfolio = client.post(
        "/portfolios", json={"ips_id": ips["ips_id"], "total_investment": "50000"}
    ).json()
    holding_id = portfolio["holdings"][0]["holding_id"]

    holding_url = f"/portfolios/{portfolio['portfolio_id']}/holdings/{holding_id}"
    missing_policy = client.delete(holding_url)
    assert missing_policy.status_code == 422

    two_fields = client.patch(
        holding_url,
        json={"allocated_percent": "10", "allocated_amount": "100"},
    )
    assert two_fields.status_code == 422

    mismatch = client.put(
        f"/portfolios/{portfolio['portfolio_id']}/holdings",
        json={
            "holdings": [{"security_id": "sec_us_total_market", "allocated_percent": "90"}],
            "cash_balance": "0",
        },
    )
    assert mismatch.status_code == 422
    assert mismatch.json()["detail"].startswith("CASH_BALANCE_MISMATCH")

    zero_total = client.post(
        "/portfolios", json={"ips_id": ips["ips_id"], "total_investment": "0"}
    )
    assert zero_total.status_code == 422


def test_portfolio_build_without_security_for_class_is_conflict(monkeypatch):
    monkeypatch.setenv(
        "SECURITY_CATALOG_JSON",
        json.dumps(
            [
                {
                    "security_id": "s_eq",
                    "name": "Equity Fund",
                    "asset_class": "Equity",
                    "price": "10",
                }
            ]
        ),
    )
    ips = _eligible_ips(monkeypatch)

    response = client.post(
        "/portfolios", json={"ips_id": ips["ips_id"], "total_investment": "1000"}
    )

    assert response.status_code == 409
    assert response.json()["detail"] == "DATA_INTEGRITY_NO_SECURITY_FOR_ASSET_CLASS: Debt"


def test_portfolio_apis_can_be_disabled(monkeypatch):
    monkeypatch.setenv("PORTFOLIO_API_ENABLED", "false")

    response = client.get("/portfolios/pf_any")

    assert response.status_code == 404
    assert response.json()["detail"] == "PORTFOLIO_API_DISABLED"


def test_security_catalog_endpoints():
    securities = client.get("/securities").json()
    names = [item["name"] for item in securities]

    assert names == sorted(names)
    assert client.get("/securities/asset-classes").json() == [
        "Alternatives",
        "Equity",
        "Fixed Income",
    ]


def test_latest_client_portfolio_endpoint(monkeypatch):
    _with_analyzer(monkeypatch)
    assert client.get("/clients/cl_api/portfolio").status_code == 404

    ips = _eligible_ips(monkeypatch)
    built = client.post(
        "/portfolios", json={"ips_id": ips["ips_id"], "total_investment": "80000"}
    ).json()

    response = client.get("/clients/cl_api/portfolio")

    assert response.status_code == 200
    body = response.json()
    assert body["portfolio_id"] == built["portfolio_id"]
    assert len(body["holdings"]) == 3
    assert Decimal(body["cash_balance"]) == Decimal("0")
