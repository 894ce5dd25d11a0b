from io import BytesIO

from openpyxl import load_workbook

from app.models.employee import Employee
from app.models.product import Product
from app.models.user import User
from app.models.vendor import Vendor

API = "/api/v1/orders"


def _body(world, **overrides):
    body = {
        "employee_id": world.employee.id,
        "items": [{"product_id": world.products.shirt.id, "size": "M", "quantity": 1}],
    }
    body.update(overrides)
    return body


def test_employee_orders_for_self(client, world, headers):
    r = client.post(API, json=_body(world), headers=headers(world.users.employee))

    assert r.status_code == 201
    data = r.json()
    assert data["order_number"].startswith("ORD-")
    assert data["pr_number"].startswith("PR")
    assert data["status"] == "Awaiting approval"
    # no workflow seeded for this company
    assert data["unified_status"] == "PENDING_APPROVAL"
    assert data["shipping_address"] == "12 Mount Road"
    assert data["items"][0]["product_name"] == "Work Shirt"
    assert float(data["total"]) == 500


def test_employee_cannot_order_for_someone_else(client, db, world, headers):
    other = Employee(
        company_id=world.company.id, location_id=world.location.id, employee_code="E1002",
        first_name="Ravi", last_name="S", gender="male",
    )
    db.add(other)
    db.commit()

    r = client.post(API, json=_body(world, employee_id=other.id),
                    headers=headers(world.users.employee))

    assert r.status_code == 403


def test_admin_orders_into_workflow(client, workflows, headers):
    r = client.post(API, json=_body(workflows), headers=headers(workflows.users.company_admin))

    assert r.status_code == 201
    assert r.json()["current_stage"] == "LOCATION_APPROVAL"


def test_mixed_vendors_rejected(client, db, world, headers):
    other_vendor = Vendor(code="STEPS", name="Steps Footwear")
    db.add(other_vendor)
    db.flush()
    boot = Product(company_id=world.company.id, vendor_id=other_vendor.id, sku="BT-01",
                   name="Boot", category="shoe", gender="unisex", sizes="9", price=900)
    db.add(boot)
    db.commit()

    items = [
        {"product_id": world.products.shirt.id, "size": "M", "quantity": 1},
        {"product_id": boot.id, "size": "9", "quantity": 1},
    ]
    r = client.post(API, json=_body(world, items=items), headers=headers(world.users.company_admin))

    assert r.status_code == 400
    assert "same vendor" in r.json()["error"]["msg"]


def test_eligibility_is_enforced(client, world, headers):
    items = [{"product_id": world.products.shirt.id, "size": "M", "quantity": 3}]

    r = client.post(API, json=_body(world, items=items), headers=headers(world.users.employee))

    assert r.status_code == 400


def test_invalid_size_and_home_pincode(client, world, headers):
    items = [{"product_id": world.products.shirt.id, "size": "XXXL", "quantity": 1}]
    r = client.post(API, json=_body(world, items=items), headers=headers(world.users.employee))
    assert r.status_code == 400

    r = client.post(API, json=_body(world, delivery_option="HOME", shipping_pincode="012345"),
                    headers=headers(world.users.employee))
    assert r.status_code == 422


def test_listing_is_scoped(client, world, headers):
    client.post(API, json=_body(world), headers=headers(world.users.employee))

    for user in (world.users.employee, world.users.vendor, world.users.company_admin):
        r = client.get(API, headers=headers(user))
        assert r.status_code == 200
        assert len(r.json()) == 1

    r = client.get(API, params={"status": "Delivered"}, headers=headers(world.users.company_admin))
    assert r.json() == []


def test_get_order_hidden_from_other_vendor(client, db, world, headers):
    order = client.post(API, json=_body(world), headers=headers(world.users.employee)).json()
    other_vendor = Vendor(code="OTHER", name="Other Vendor")
    db.add(other_vendor)
    db.flush()
    stranger = User(name="Other Desk", email="desk@other.test", password_hash="x",
                    role="VENDOR", vendor_id=other_vendor.id, is_active=True)
    db.add(stranger)
    db.commit()

    r = client.get(f"{API}/{order['order_number']}", headers=headers(world.users.vendor))
    assert r.status_code == 200

    r = client.get(f"{API}/{order['order_number']}", headers=headers(stranger))
    assert r.status_code == 404


def test_bulk_template(client, world, headers):
    r = client.get(f"{API}/bulk-template", headers=headers(world.users.company_admin))

    assert r.status_code == 200
    assert r.headers["content-type"].startswith(
        "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet")
    wb = load_workbook(BytesIO(r.content))
    assert wb.sheetnames == ["Employee Reference", "Product Reference", "Bulk Orders"]


def test_bulk_template_is_company_admin_only(client, world, headers):
    r = client.get(f"{API}/bulk-template", headers=headers(world.users.location_admin))

    assert r.status_code == 403


def test_mark_delivered_needs_dispatch(client, world, headers):
    order = client.post(API, json=_body(world), headers=headers(world.users.employee)).json()

    r = client.post(f"{API}/{order['order_number']}/mark-delivered", json={},
                    headers=headers(world.users.employee))

    assert r.status_code == 409
