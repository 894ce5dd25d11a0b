from app.models.grn import GRN
from app.models.order import Order
from app.models.shipment import Shipment

API = "/api/v1"


def _approved_order(client, world, headers):
    r = client.post(f"{API}/orders", json={
        "employee_id": world.employee.id,
        "items": [{"product_id": world.products.pant.id, "size": "32", "quantity": 2}],
    }, headers=headers(world.users.employee))
    order = r.json()

    for user in (world.users.location_admin, world.users.company_admin):
        r = client.post(f"{API}/workflow/approve",
                        json={"entity_type": "ORDER", "entity_id": order["pr_number"]},
                        headers=headers(user))
        assert r.status_code == 200
    return order


def _approve(client, headers, user, entity_type, entity_id):
    return client.post(f"{API}/workflow/approve",
                       json={"entity_type": entity_type, "entity_id": entity_id},
                       headers=headers(user))


def test_order_to_invoice(client, db, workflows, headers):
    world = workflows
    vendor_h = headers(world.users.vendor)
    order = _approved_order(client, world, headers)
    pr = order["pr_number"]

    r = client.get(f"{API}/orders/{pr}", headers=vendor_h)
    assert r.json()["status"] == "Awaiting fulfilment"
    assert r.json()["po_number"].startswith("PO")

    r = client.post(f"{API}/shipments/manual", json={
        "pr_numbers": [pr, "PR-UNKNOWN"],
        "mode_of_transport": "COURIER",
        "courier_provider": "BlueDart",
        "shipment_number": "BD123",
    }, headers=vendor_h)
    assert r.status_code == 200
    body = r.json()
    assert len(body["shipments"]) == 1
    assert body["shipments"][0]["courier_provider"] == "BlueDart"
    assert body["shipments"][0]["shipment_status"] == "IN_TRANSIT"
    assert body["errors"] == [{"pr_number": "PR-UNKNOWN", "error": "Order not found"}]

    # dispatching twice is reported, not repeated
    r = client.post(f"{API}/shipments/manual",
                    json={"pr_numbers": [pr], "mode_of_transport": "HAND_DELIVERY"},
                    headers=vendor_h)
    assert r.json()["shipments"] == []
    assert "already dispatched" in r.json()["errors"][0]["error"]

    r = client.post(f"{API}/grns", json={"pr_numbers": [pr]}, headers=vendor_h)
    assert r.status_code == 400

    r = client.post(f"{API}/orders/{pr}/mark-delivered", json={"received_by": "Asha"},
                    headers=headers(world.users.employee))
    assert r.status_code == 200
    assert r.json()["status"] == "Delivered"
    assert db.query(Shipment).one().shipment_status == "DELIVERED"

    r = client.post(f"{API}/grns", json={"pr_numbers": [pr], "remarks": "all good"},
                    headers=vendor_h)
    assert r.status_code == 201
    grn = r.json()
    assert grn["grn_number"].startswith("GRN")
    assert grn["current_stage"] == "GRN_COMPANY_APPROVAL"
    assert grn["items"][0]["product_code"] == "PT-01"
    assert grn["items"][0]["delivered_quantity"] == 2

    r = client.post(f"{API}/grns", json={"pr_numbers": [pr]}, headers=vendor_h)
    assert r.status_code == 409

    invoice_body = {"grn_number": grn["grn_number"], "vendor_invoice_number": "UF/24/001",
                    "invoice_amount": "1400.00", "tax_amount": "168.00"}
    r = client.post(f"{API}/invoices", json=invoice_body, headers=vendor_h)
    assert r.status_code == 400

    r = _approve(client, headers, world.users.company_admin, "GRN", grn["grn_number"])
    assert r.status_code == 200
    assert r.json()["data"]["is_fully_approved"] is True

    r = client.post(f"{API}/invoices", json=invoice_body, headers=vendor_h)
    assert r.status_code == 201
    inv = r.json()
    assert inv["invoice_number"].startswith("INV")
    assert inv["po_number"] == order_po(db, order)
    assert inv["current_stage"] == "INVOICE_COMPANY_APPROVAL"

    db.expire_all()
    assert db.query(GRN).one().status == "INVOICED"

    r = client.post(f"{API}/invoices", json=invoice_body, headers=vendor_h)
    assert r.status_code == 409

    r = _approve(client, headers, world.users.finance_admin, "INVOICE", inv["invoice_number"])
    assert r.status_code == 200
    assert r.json()["data"]["new_status"] == "APPROVED"

    r = client.get(f"{API}/invoices", headers=headers(world.users.company_admin))
    assert r.json()[0]["invoice_status"] == "APPROVED"


def order_po(db, order):
    return db.get(Order, order["id"]).po_number


def test_courier_requires_provider(client, workflows, headers):
    r = client.post(f"{API}/shipments/manual",
                    json={"pr_numbers": ["PR1"], "mode_of_transport": "COURIER"},
                    headers=headers(workflows.users.vendor))

    assert r.status_code == 422


def test_unapproved_order_cannot_ship(client, workflows, headers):
    r = client.post(f"{API}/orders", json={
        "employee_id": workflows.employee.id,
        "items": [{"product_id": workflows.products.shoe.id, "size": "9", "quantity": 1}],
    }, headers=headers(workflows.users.employee))
    pr = r.json()["pr_number"]

    r = client.post(f"{API}/shipments/manual",
                    json={"pr_numbers": [pr], "mode_of_transport": "DIRECT"},
                    headers=headers(workflows.users.vendor))

    assert r.json()["shipments"] == []
    assert "not ready for dispatch" in r.json()["errors"][0]["error"]


def test_shipments_are_vendor_only(client, workflows, headers):
    r = client.get(f"{API}/shipments", headers=headers(workflows.users.company_admin))

    assert r.status_code == 403


def test_rejected_grn_releases_the_order(client, db, workflows, headers):
    world = workflows
    vendor_h = headers(world.users.vendor)
    pr = _approved_order(client, world, headers)["pr_number"]

    client.post(f"{API}/shipments/manual",
                json={"pr_numbers": [pr], "mode_of_transport": "DIRECT"}, headers=vendor_h)
    client.post(f"{API}/orders/{pr}/mark-delivered", json={"received_by": "Asha"},
                headers=headers(world.users.employee))
    r = client.post(f"{API}/grns", json={"pr_numbers": [pr]}, headers=vendor_h)
    assert r.status_code == 201
    first = r.json()["grn_number"]

    r = client.post(f"{API}/workflow/reject",
                    json={"entity_type": "GRN", "entity_id": first,
                          "reason_code": "WRONG_ITEMS", "remarks": "sizes swapped"},
                    headers=headers(world.users.company_admin))
    assert r.status_code == 200
    assert r.json()["data"]["new_status"] == "REJECTED"

    r = client.post(f"{API}/grns", json={"pr_numbers": [pr], "remarks": "corrected"},
                    headers=vendor_h)
    assert r.status_code == 201
    assert r.json()["grn_number"] != first
    assert db.query(GRN).count() == 2
