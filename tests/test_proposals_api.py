"""
API tests: customers/partners, store settings, CAD import preview, proposal
negotiation through to the contract.
"""

from datetime import date, timedelta

from quote_engine import models


def _upload(content: bytes, filename: str = "project.xml"):
    return {"file": (filename, content, "application/xml")}


def _create_customer(client, auth_headers, name="Ana Souza"):
    response = client.post("/api/customers/", json={"name": name, "phone": "11 99999-0000"},
                           headers=auth_headers)
    assert response.status_code == 200
    return response.json()["id"]


def _create_draft(client, auth_headers, client_id=None):
    response = client.post("/api/proposals/", json={"client_id": client_id}, headers=auth_headers)
    assert response.status_code == 200
    return response.json()["id"]


def _add_environment(client, auth_headers, draft_id, name="Kitchen", value=5000.0):
    response = client.post(f"/api/proposals/{draft_id}/environments",
                           json={"environment_name": name, "value": value}, headers=auth_headers)
    assert response.status_code == 200
    return response.json()


# ============================================================
# Health, auth, registry
# ============================================================

def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_requires_authentication(client):
    assert client.get("/api/customers/").status_code == 401
    bad = {"Authorization": "Bearer not-a-token"}
    assert client.get("/api/customers/", headers=bad).status_code == 401


def test_inactive_operator_rejected(client, auth_headers, db, operator):
    operator.is_active = False
    db.commit()
    assert client.get("/api/customers/", headers=auth_headers).status_code == 401


def test_customers_and_partners(client, auth_headers):
    customer_id = _create_customer(client, auth_headers)
    assert client.get(f"/api/customers/{customer_id}", headers=auth_headers).json()["name"] == "Ana Souza"
    assert client.get("/api/customers/999", headers=auth_headers).status_code == 404

    response = client.post("/api/partners/", json={"name": "Studio Arq", "default_commission_pct": 8},
                           headers=auth_headers)
    assert response.status_code == 200
    assert client.post("/api/partners/", json={"name": "Greedy", "default_commission_pct": 100},
                       headers=auth_headers).status_code == 422
    assert [p["name"] for p in client.get("/api/partners/", headers=auth_headers).json()] == ["Studio Arq"]


# ============================================================
# Store settings
# ============================================================

def test_settings_defaults_and_update(client, auth_headers):
    response = client.get("/api/settings/", headers=auth_headers)
    assert response.status_code == 200
    assert response.json()["balance_tolerance"] == 1.0

    response = client.put("/api/settings/", json={"markup_percent": 25, "max_discount_percent": 12},
                          headers=auth_headers)
    assert response.status_code == 200
    data = response.json()
    assert data["markup_percent"] == 25
    assert data["max_discount_percent"] == 12


def test_settings_reject_negative_markup(client, auth_headers):
    response = client.put("/api/settings/", json={"markup_percent": -5}, headers=auth_headers)
    assert response.status_code == 422


# ============================================================
# CAD import preview
# ============================================================

def test_bom_preview_uses_store_markup(client, auth_headers, cad_export):
    client.put("/api/settings/", json={"markup_percent": 25}, headers=auth_headers)
    response = client.post("/api/bom/import", files=_upload(cad_export("kitchen_panels.xml")),
                           headers=auth_headers)
    assert response.status_code == 200
    data = response.json()
    assert len(data["environments"]) == 1
    assert len(data["environments"][0]["detail"]) == 2
    assert data["cost_total"] == 1500.0
    assert data["sale_total"] == 1875.0


def test_bom_preview_errors(client, auth_headers, cad_export):
    response = client.post("/api/bom/import", files=_upload(cad_export("truncated.xml")),
                           headers=auth_headers)
    assert response.status_code == 422
    assert response.json()["detail"]["code"] == "malformed_document"

    response = client.post("/api/bom/import", files=_upload(cad_export("no_prices.xml")),
                           headers=auth_headers)
    assert response.status_code == 422
    assert response.json()["detail"]["code"] == "no_priceable_items"

    response = client.post("/api/bom/import", files=_upload(b"a,b,c", filename="project.csv"),
                           headers=auth_headers)
    assert response.status_code == 400


# ============================================================
# Proposal negotiation
# ============================================================

def test_import_into_draft(client, auth_headers, cad_export):
    draft_id = _create_draft(client, auth_headers)
    response = client.post(f"/api/proposals/{draft_id}/import", files=_upload(cad_export("apartment.xml")),
                           headers=auth_headers)
    assert response.status_code == 200
    data = response.json()
    assert len(data["draft"]["lines"]) == 4
    assert abs(data["totals"]["base"] - 7486.5) < 0.01


def test_failed_import_keeps_draft(client, auth_headers, cad_export):
    draft_id = _create_draft(client, auth_headers)
    _add_environment(client, auth_headers, draft_id)
    response = client.post(f"/api/proposals/{draft_id}/import", files=_upload(cad_export("no_prices.xml")),
                           headers=auth_headers)
    assert response.status_code == 422
    stored = client.get(f"/api/proposals/{draft_id}", headers=auth_headers).json()
    assert len(stored["draft"]["lines"]) == 1


def test_unknown_draft_is_404(client, auth_headers):
    assert client.get("/api/proposals/missing", headers=auth_headers).status_code == 404


def test_environment_items_sorted(client, auth_headers, cad_export):
    draft_id = _create_draft(client, auth_headers)
    data = client.post(f"/api/proposals/{draft_id}/import", files=_upload(cad_export("apartment.xml")),
                       headers=auth_headers).json()
    kitchen = next(line for line in data["draft"]["lines"] if line["environment_name"] == "Kitchen")

    response = client.get(f"/api/proposals/{draft_id}/environments/{kitchen['id']}/items",
                          params={"sort": "total_price", "direction": "desc"}, headers=auth_headers)
    assert response.status_code == 200
    data = response.json()
    assert [item["description"] for item in data["items"]] == ["Upper cabinet", "Handle"]
    assert data["next_direction"] == {"quantity": "asc", "description": "asc", "total_price": "asc"}

    response = client.get(f"/api/proposals/{draft_id}/environments/{kitchen['id']}/items",
                          params={"sort": "color"}, headers=auth_headers)
    assert response.status_code == 400


def test_referral_defaults_to_partner_commission(client, auth_headers):
    partner = client.post("/api/partners/", json={"name": "Studio Arq", "default_commission_pct": 10},
                          headers=auth_headers).json()
    draft_id = _create_draft(client, auth_headers)
    _add_environment(client, auth_headers, draft_id, value=9000.0)

    response = client.put(f"/api/proposals/{draft_id}/referral",
                          json={"referral_party_id": partner["id"]}, headers=auth_headers)
    assert response.status_code == 200
    totals = response.json()["totals"]
    assert abs(totals["proposal_total"] - 10000.0) < 0.01
    assert abs(totals["referral_payout"] - 1000.0) < 0.01

    response = client.put(f"/api/proposals/{draft_id}/referral",
                          json={"referral_party_id": partner["id"], "referral_percent": 100},
                          headers=auth_headers)
    assert response.status_code == 422
    assert response.json()["detail"]["code"] == "configuration_error"


def test_discount_needs_exactly_one_field(client, auth_headers):
    draft_id = _create_draft(client, auth_headers)
    _add_environment(client, auth_headers, draft_id, value=8000.0)
    url = f"/api/proposals/{draft_id}/discount"
    assert client.put(url, json={}, headers=auth_headers).status_code == 400
    assert client.put(url, json={"discount_percent": 5, "discount_value": 10},
                      headers=auth_headers).status_code == 400

    response = client.put(url, json={"discount_value": 1000}, headers=auth_headers)
    assert response.status_code == 200
    assert abs(response.json()["totals"]["discount_percent"] - 12.5) < 1e-9


def test_installments_with_down_payment(client, auth_headers):
    draft_id = _create_draft(client, auth_headers)
    _add_environment(client, auth_headers, draft_id, value=5000.0)
    url = f"/api/proposals/{draft_id}/installments"

    client.post(url, json={"method": "pix", "amount": 2000, "down_payment": True}, headers=auth_headers)
    response = client.post(url, json={"method": "credit_card", "amount": 3000, "count": 3},
                           headers=auth_headers)
    assert response.status_code == 200
    data = response.json()
    assert [i["label"] for i in data["draft"]["schedule"]] == ["Entrada", "1/3", "2/3", "3/3"]
    assert data["totals"]["is_balanced"] is True

    response = client.delete(f"{url}/1", headers=auth_headers)
    assert abs(response.json()["totals"]["remainder"] - 1000.0) < 0.01


def test_negotiation_to_contract(client, auth_headers, db):
    customer_id = _create_customer(client, auth_headers)
    draft_id = _create_draft(client, auth_headers)
    _add_environment(client, auth_headers, draft_id, value=5000.0)

    response = client.put(f"/api/proposals/{draft_id}/client", json={"client_id": customer_id},
                          headers=auth_headers)
    assert response.status_code == 200

    due = (date.today() + timedelta(days=10)).isoformat()
    client.post(f"/api/proposals/{draft_id}/installments",
                json={"method": "pix", "amount": 3000, "first_due_date": due}, headers=auth_headers)

    # Unbalanced: 2000 left to allocate
    response = client.post(f"/api/proposals/{draft_id}/finalize", headers=auth_headers)
    assert response.status_code == 409
    assert response.json()["detail"]["remainder"] == 2000.0

    response = client.post(f"/api/proposals/{draft_id}/apply-remainder", headers=auth_headers)
    assert response.status_code == 200
    totals = response.json()["totals"]
    assert abs(totals["final_value"] - 3000.0) < 0.01
    assert totals["is_balanced"] is True

    response = client.post(f"/api/proposals/{draft_id}/finalize", headers=auth_headers)
    assert response.status_code == 200
    contract = response.json()
    assert contract["contract_number"] == f"PRJ-{date.today().year}-0001"
    assert abs(contract["final_value"] - 3000.0) < 0.01

    stored = db.query(models.Contract).one()
    assert len(stored.installments) == 1
    assert stored.installments[0].label == "À vista"

    draft = client.get(f"/api/proposals/{draft_id}", headers=auth_headers).json()
    assert draft["status"] == "finalized"
    assert draft["draft"]["schedule"] == []

    # Finalized drafts are read-only
    response = client.post(f"/api/proposals/{draft_id}/environments",
                           json={"environment_name": "Hall", "value": 100}, headers=auth_headers)
    assert response.status_code == 409


def test_finalize_without_client_rejected(client, auth_headers):
    draft_id = _create_draft(client, auth_headers)
    _add_environment(client, auth_headers, draft_id, value=100.0)
    client.post(f"/api/proposals/{draft_id}/installments", json={"method": "cash", "amount": 100},
                headers=auth_headers)
    response = client.post(f"/api/proposals/{draft_id}/finalize", headers=auth_headers)
    assert response.status_code == 422


def test_installments_below_one_cent_rejected(client, auth_headers):
    draft_id = _create_draft(client, auth_headers)
    _add_environment(client, auth_headers, draft_id, value=100.0)
    url = f"/api/proposals/{draft_id}/installments"

    response = client.post(url, json={"method": "pix", "amount": 0.02, "count": 3}, headers=auth_headers)
    assert response.status_code == 422
    assert response.json()["detail"]["code"] == "configuration_error"

    response = client.post(url, json={"method": "pix", "amount": 0.004, "down_payment": True},
                           headers=auth_headers)
    assert response.status_code == 422

    stored = client.get(f"/api/proposals/{draft_id}", headers=auth_headers).json()
    assert stored["draft"]["schedule"] == []


def test_lowered_discount_ceiling_does_not_lock_the_draft(client, auth_headers):
    draft_id = _create_draft(client, auth_headers)
    _add_environment(client, auth_headers, draft_id, value=5000.0)
    response = client.put(f"/api/proposals/{draft_id}/discount", json={"discount_percent": 20},
                          headers=auth_headers)
    assert response.status_code == 200

    client.put("/api/settings/", json={"max_discount_percent": 10}, headers=auth_headers)

    response = client.post(f"/api/proposals/{draft_id}/installments",
                           json={"method": "pix", "amount": 4000}, headers=auth_headers)
    assert response.status_code == 200
    assert response.json()["totals"]["is_balanced"] is True


def test_referral_percent_without_partner(client, auth_headers):
    draft_id = _create_draft(client, auth_headers)
    _add_environment(client, auth_headers, draft_id, value=5000.0)
    response = client.put(f"/api/proposals/{draft_id}/referral", json={"referral_percent": 10},
                          headers=auth_headers)
    assert response.status_code == 200
    totals = response.json()["totals"]
    assert abs(totals["proposal_total"] - 5555.56) < 0.01
    assert abs(totals["referral_payout"] - 555.56) < 0.01


def test_partner_commission_above_referral_ceiling_rejected(client, auth_headers):
    response = client.post("/api/partners/", json={"name": "Greedy", "default_commission_pct": 95},
                           headers=auth_headers)
    assert response.status_code == 422
    response = client.post("/api/partners/", json={"name": "Fair", "default_commission_pct": 90},
                           headers=auth_headers)
    assert response.status_code == 200
