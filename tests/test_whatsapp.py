from app.core.config import settings
from app.models.order import Order
from app.models.whatsapp import WhatsAppSession
from app.services.whatsapp_state import States, process_message

PHONE = "+919876543210"


def _login(db):
    reply, state = process_message(db, "98765 43210", "hi")
    assert "Welcome, Asha Kumar" in reply
    assert state == States.MAIN_MENU


def _to_review(db, product_no="2", size="m", qty="2"):
    process_message(db, PHONE, "1")
    process_message(db, PHONE, product_no)
    process_message(db, PHONE, size)
    return process_message(db, PHONE, qty)


def test_unknown_number_is_not_authenticated(db, world):
    reply, state = process_message(db, "+911111111111", "1")

    assert "Authentication Failed" in reply
    assert state == States.MAIN_MENU
    session = db.query(WhatsAppSession).filter(WhatsAppSession.phone == "+911111111111").one()
    assert session.employee_id is None


def test_help_works_before_login(db, world):
    reply, state = process_message(db, "+911111111111", "help")

    assert "Help & Support" in reply
    assert state == States.HELP


def test_phone_is_normalized_and_bound(db, world):
    _login(db)

    session = db.query(WhatsAppSession).one()
    assert session.phone == PHONE
    assert session.employee_id == world.employee.id


def test_product_list_is_numbered_across_categories(db, world):
    _login(db)

    reply, state = process_message(db, PHONE, "1")

    assert state == States.ORDER_SELECT_ITEM
    assert "1. Work Pant - ₹700" in reply
    assert "2. Work Shirt - ₹500" in reply
    assert "3. Safety Shoe - ₹1200" in reply
    # female-only item is filtered out
    assert "Blouse" not in reply
    assert "(Remaining: 2)" in reply


def test_invalid_choices_keep_state(db, world):
    _login(db)
    process_message(db, PHONE, "1")

    reply, state = process_message(db, PHONE, "9")
    assert "between 1 and 3" in reply
    assert state == States.ORDER_SELECT_ITEM

    process_message(db, PHONE, "2")
    reply, state = process_message(db, PHONE, "XXL")
    assert "Invalid size" in reply
    assert state == States.ORDER_SET_SIZE

    reply, state = process_message(db, PHONE, "m")
    assert state == States.ORDER_SET_QTY
    assert "Enter quantity (1-2)" in reply

    reply, state = process_message(db, PHONE, "3")
    assert "between 1 and 2" in reply
    assert state == States.ORDER_SET_QTY


def test_office_order_end_to_end(db, world):
    _login(db)

    reply, state = _to_review(db)
    assert state == States.ORDER_REVIEW
    assert "Total: ₹1000" in reply

    reply, state = process_message(db, PHONE, "1")
    assert state == States.ORDER_DELIVERY
    assert "Office Pickup Selected" in reply

    reply, state = process_message(db, PHONE, "confirm")
    assert "Order Confirmed!" in reply
    assert state == States.MAIN_MENU

    order = db.query(Order).one()
    assert order.source == "WHATSAPP"
    assert order.delivery_option == "OFFICE"
    assert order.shipping_address == "12 Mount Road"
    assert order.items[0].quantity == 2
    assert order.order_number in reply

    db.refresh(world.employee)
    assert world.employee.consumed_shirt == 2

    session = db.query(WhatsAppSession).one()
    assert session.cart == []


def test_home_delivery_uses_typed_address(db, world):
    _login(db)
    _to_review(db, product_no="3", size="9", qty="1")

    reply, state = process_message(db, PHONE, "2")
    assert "Home Delivery Selected" in reply

    reply, state = process_message(db, PHONE, "22 Beach Road, Besant Nagar")
    assert "Address Saved" in reply
    assert state == States.ORDER_DELIVERY

    process_message(db, PHONE, "CONFIRM")

    order = db.query(Order).one()
    assert order.delivery_option == "HOME"
    assert order.shipping_address == "22 Beach Road, Besant Nagar"


def test_exhausted_category_disappears(db, world):
    _login(db)
    _to_review(db)
    process_message(db, PHONE, "1")
    process_message(db, PHONE, "CONFIRM")

    reply, _ = process_message(db, PHONE, "1")

    assert "Work Shirt" not in reply
    assert "1. Work Pant" in reply
    assert "2. Safety Shoe" in reply


def test_edit_clears_cart(db, world):
    _login(db)
    _to_review(db, product_no="3", size="9", qty="1")
    process_message(db, PHONE, "EDIT")

    # EDIT clears the cart, so the shoe is available again
    process_message(db, PHONE, "3")
    reply, state = process_message(db, PHONE, "9")
    assert state == States.ORDER_SET_QTY
    assert "(1-1)" in reply


def test_menu_resets_conversation(db, world):
    _login(db)
    _to_review(db)

    reply, state = process_message(db, PHONE, "MENU")

    assert state == States.MAIN_MENU
    assert "Uniform Distribution System" in reply
    session = db.query(WhatsAppSession).one()
    assert session.cart == []
    assert session.context == {}


def test_status_and_past_orders(db, world):
    _login(db)

    reply, _ = process_message(db, PHONE, "STATUS")
    assert "No Open Orders" in reply

    _to_review(db)
    process_message(db, PHONE, "1")
    process_message(db, PHONE, "CONFIRM")
    order = db.query(Order).one()

    reply, state = process_message(db, PHONE, "STATUS")
    assert state == States.CHECK_STATUS
    assert order.order_number in reply

    reply, _ = process_message(db, PHONE, "1")
    assert "Order Status" in reply
    assert "pending approval" in reply

    reply, _ = process_message(db, PHONE, "ORD-NOPE")
    assert "Order not found" in reply

    process_message(db, PHONE, "MENU")
    reply, state = process_message(db, PHONE, "2")
    assert state == States.VIEW_PAST_ORDERS
    assert "Your Orders" in reply


# -------------------------
# webhook
# -------------------------
def test_webhook_verification(client, monkeypatch):
    monkeypatch.setattr(settings, "WHATSAPP_VERIFY_TOKEN", "verify-me")

    r = client.get("/api/v1/whatsapp/webhook", params={
        "hub.mode": "subscribe", "hub.verify_token": "verify-me", "hub.challenge": "12345"})
    assert r.status_code == 200
    assert r.text == "12345"

    r = client.get("/api/v1/whatsapp/webhook", params={
        "hub.mode": "subscribe", "hub.verify_token": "wrong", "hub.challenge": "12345"})
    assert r.status_code == 403


def test_webhook_simple_payload(client, world):
    r = client.post("/api/v1/whatsapp/webhook", json={"from": "9876543210", "text": "hi"})

    assert r.status_code == 200
    body = r.json()
    assert body["to"] == PHONE
    assert body["state"] == States.MAIN_MENU
    assert "Welcome" in body["reply"]
    assert body["delivered"] is None


def test_webhook_cloud_envelope(client, world):
    payload = {
        "entry": [{
            "changes": [{
                "value": {
                    "messages": [{"from": "919876543210", "type": "text",
                                  "text": {"body": "help"}}],
                },
            }],
        }],
    }

    r = client.post("/api/v1/whatsapp/webhook", json=payload)

    assert r.status_code == 200
    assert r.json()["state"] == States.HELP


def test_webhook_ignores_status_updates(client, world):
    payload = {"entry": [{"changes": [{"value": {"statuses": [{"status": "read"}]}}]}]}

    r = client.post("/api/v1/whatsapp/webhook", json=payload)

    assert r.status_code == 200
    assert r.json() is None
