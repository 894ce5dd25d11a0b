# FILE: app/services/whatsapp_state.py
"""
WhatsApp ordering conversation.

process_message(db, phone, text) -> (reply, state)

Session cart / context are JSON columns: always assign a new value,
never mutate in place, or the change is not flushed.
"""
from __future__ import annotations

import logging
from collections import defaultdict
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from fastapi import HTTPException
from sqlalchemy.orm import Session

from app.models.employee import Employee
from app.models.order import Order
from app.models.whatsapp import WhatsAppSession
from app.schemas.order import OrderItemIn
from app.services import order_service
from app.services import whatsapp_format as fmt
from app.utils.validators import normalize_phone

logger = logging.getLogger(__name__)

MAX_QTY = 10
MIN_ADDRESS_LEN = 10


class States:
    MAIN_MENU = "MAIN_MENU"
    ORDER_SELECT_ITEM = "ORDER_SELECT_ITEM"
    ORDER_SET_SIZE = "ORDER_SET_SIZE"
    ORDER_SET_QTY = "ORDER_SET_QTY"
    ORDER_REVIEW = "ORDER_REVIEW"
    ORDER_DELIVERY = "ORDER_DELIVERY"
    VIEW_PAST_ORDERS = "VIEW_PAST_ORDERS"
    CHECK_STATUS = "CHECK_STATUS"
    HELP = "HELP"


# -------------------------
# Session
# -------------------------
def get_or_create_session(db: Session, phone: str) -> WhatsAppSession:
    phone = normalize_phone(phone)
    s = db.query(WhatsAppSession).filter(WhatsAppSession.phone == phone).first()
    if s is None:
        s = WhatsAppSession(phone=phone, state=States.MAIN_MENU, cart=[], context={})
        db.add(s)
        db.flush()
    return s


def _ctx(s: WhatsAppSession) -> Dict[str, Any]:
    return dict(s.context or {})


def _cart(s: WhatsAppSession) -> List[Dict[str, Any]]:
    return list(s.cart or [])


def _reset(s: WhatsAppSession) -> None:
    s.state = States.MAIN_MENU
    s.cart = []
    s.context = {}


def _employee(db: Session, s: WhatsAppSession) -> Optional[Employee]:
    return db.get(Employee, s.employee_id) if s.employee_id else None


def _past_orders(db: Session, employee_id: int) -> List[Order]:
    return (
        db.query(Order)
        .filter(Order.employee_id == employee_id)
        .order_by(Order.created_at.desc(), Order.id.desc())
        .limit(10)
        .all()
    )


def _find_order(db: Session, employee_id: int, ref: str) -> Optional[Order]:
    return (
        db.query(Order)
        .filter(
            Order.employee_id == employee_id,
            (Order.order_number == ref) | (Order.pr_number == ref),
        )
        .first()
    )


def _pick(ref: str, n: int) -> Optional[int]:
    """1-based menu choice -> 0-based index, None when out of range."""
    if not ref.isdigit():
        return None
    idx = int(ref) - 1
    return idx if 0 <= idx < n else None


# -------------------------
# Entry
# -------------------------
def process_message(db: Session, phone: str, text: str) -> Tuple[str, str]:
    s = get_or_create_session(db, phone)
    msg = (text or "").strip()
    cmd = msg.upper()

    try:
        reply = _dispatch(db, s, msg, cmd)
    except HTTPException as e:
        logger.warning("WhatsApp %s: %s", s.phone, e.detail)
        reply = fmt.error(str(e.detail))

    s.last_activity = datetime.utcnow()
    db.commit()
    return reply, s.state


def _dispatch(db: Session, s: WhatsAppSession, msg: str, cmd: str) -> str:
    if cmd in ("MENU", "MAIN MENU"):
        _reset(s)
        return fmt.main_menu()

    if cmd == "HELP":
        s.state = States.HELP
        return fmt.help_text()

    emp = _employee(db, s)
    if emp is None:
        return _authenticate(db, s)

    if cmd == "STATUS":
        orders = order_service.open_orders_for_employee(db, emp.id)
        if not orders:
            return fmt.no_open_orders()
        s.state = States.CHECK_STATUS
        s.context = {"order_ids": [o.id for o in orders[:10]]}
        return fmt.order_list(orders, title="Open Orders")

    handler = _HANDLERS.get(s.state, _main_menu)
    return handler(db, s, emp, msg, cmd)


def _authenticate(db: Session, s: WhatsAppSession) -> str:
    emp = order_service.find_employee_by_phone(db, s.phone)
    if emp is None:
        logger.info("WhatsApp auth failed for %s", s.phone)
        return fmt.auth_failure()
    s.employee_id = emp.id
    _reset(s)
    logger.info("WhatsApp session %s bound to employee %s", s.phone, emp.id)
    return fmt.auth_success(emp.full_name)


# -------------------------
# States
# -------------------------
def _main_menu(db, s, emp, msg, cmd) -> str:
    if cmd == "1" or "ORDER" in cmd or "PLACE" in cmd:
        return _start_order(db, s, emp)

    if cmd == "2" or "PAST" in cmd or "HISTORY" in cmd:
        orders = _past_orders(db, emp.id)
        s.state = States.VIEW_PAST_ORDERS
        s.context = {"order_ids": [o.id for o in orders]}
        return fmt.order_list(orders)

    if cmd == "3" or "STATUS" in cmd or "CHECK" in cmd:
        orders = order_service.open_orders_for_employee(db, emp.id)
        if not orders:
            return fmt.no_open_orders()
        s.state = States.CHECK_STATUS
        s.context = {"order_ids": [o.id for o in orders[:10]]}
        return fmt.order_list(orders, title="Open Orders")

    if cmd == "4":
        s.state = States.HELP
        return fmt.help_text()

    s.state = States.MAIN_MENU
    return fmt.main_menu()


def _product_list_reply(s: WhatsAppSession, emp: Employee) -> str:
    ctx = _ctx(s)
    return fmt.product_list(ctx.get("eligible_products") or [], emp.remaining_eligibility())


def _start_order(db, s, emp) -> str:
    products = [fmt.product_snapshot(p) for p in order_service.eligible_products(db, emp)]
    s.context = {"eligible_products": products}
    if not products:
        s.state = States.MAIN_MENU
        return fmt.product_list([], emp.remaining_eligibility())
    s.state = States.ORDER_SELECT_ITEM
    return fmt.product_list(products, emp.remaining_eligibility())


def _select_item(db, s, emp, msg, cmd) -> str:
    if cmd == "BACK":
        _reset(s)
        return fmt.main_menu()

    ctx = _ctx(s)
    products = ctx.get("eligible_products") or []
    if not products:
        return _start_order(db, s, emp)

    idx = _pick(cmd, len(products))
    if idx is None:
        return fmt.error(f"Invalid selection. Please choose a number between 1 and {len(products)}.")

    product = products[idx]
    ctx["current_product"] = product
    ctx.pop("current_size", None)
    s.context = ctx
    s.state = States.ORDER_SET_SIZE
    return fmt.size_prompt(product["name"], product["price"], product["sizes"])


def _max_qty(s: WhatsAppSession, emp: Employee, category: str) -> int:
    in_cart = sum(int(i["quantity"]) for i in _cart(s) if i.get("category") == category)
    remaining = emp.remaining_eligibility().get(category, MAX_QTY) - in_cart
    return max(0, min(MAX_QTY, remaining))


def _set_size(db, s, emp, msg, cmd) -> str:
    ctx = _ctx(s)
    product = ctx.get("current_product")
    if cmd == "BACK" or not product:
        s.state = States.ORDER_SELECT_ITEM
        return _product_list_reply(s, emp)

    sizes = product.get("sizes") or []
    match = next((sz for sz in sizes if sz.upper() == cmd), None)
    if match is None:
        return fmt.error(f"Invalid size. Available sizes: {', '.join(sizes)}")

    max_qty = _max_qty(s, emp, product["category"])
    if max_qty <= 0:
        s.state = States.ORDER_SELECT_ITEM
        return fmt.eligibility_error([f"No remaining eligibility for {product['category']}"])

    ctx["current_size"] = match
    s.context = ctx
    s.state = States.ORDER_SET_QTY
    return fmt.quantity_prompt(product["name"], match, max_qty)


def _set_qty(db, s, emp, msg, cmd) -> str:
    ctx = _ctx(s)
    product = ctx.get("current_product")
    size = ctx.get("current_size")
    if not product or not size:
        s.state = States.ORDER_SELECT_ITEM
        return _product_list_reply(s, emp)

    if cmd == "BACK":
        s.state = States.ORDER_SET_SIZE
        return fmt.size_prompt(product["name"], product["price"], product["sizes"])

    max_qty = _max_qty(s, emp, product["category"])
    if not cmd.isdigit() or not (1 <= int(cmd) <= max_qty):
        return fmt.error(f"Invalid quantity. Please enter a number between 1 and {max_qty}.")

    cart = _cart(s)
    cart.append({
        "product_id": product["id"],
        "name": product["name"],
        "category": product["category"],
        "size": size,
        "quantity": int(cmd),
        "price": product["price"],
    })
    s.cart = cart
    s.context = {"eligible_products": ctx.get("eligible_products") or []}
    s.state = States.ORDER_REVIEW
    return fmt.cart_review(cart)


def _review(db, s, emp, msg, cmd) -> str:
    if cmd in ("EDIT", "BACK"):
        s.cart = []
        s.state = States.ORDER_SELECT_ITEM
        return _product_list_reply(s, emp)

    if cmd in ("1", "OFFICE"):
        option = "OFFICE"
    elif cmd in ("2", "HOME"):
        option = "HOME"
    else:
        return fmt.cart_review(_cart(s))

    ctx = _ctx(s)
    ctx["delivery_option"] = option
    ctx.pop("delivery_address", None)
    s.context = ctx
    s.state = States.ORDER_DELIVERY
    return fmt.delivery_prompt(option)


def _delivery(db, s, emp, msg, cmd) -> str:
    if cmd == "BACK":
        s.state = States.ORDER_REVIEW
        return fmt.cart_review(_cart(s))

    if cmd == "CONFIRM":
        return _confirm(db, s, emp)

    ctx = _ctx(s)
    if ctx.get("delivery_option") == "HOME" and len(msg) > MIN_ADDRESS_LEN:
        ctx["delivery_address"] = msg
        s.context = ctx
        return fmt.address_saved(msg)

    return "Please type *CONFIRM* to place the order, or *BACK* to change delivery option."


def _confirm(db, s, emp) -> str:
    cart = _cart(s)
    if not cart:
        _reset(s)
        return fmt.cart_review([])

    wanted: Dict[str, int] = defaultdict(int)
    for item in cart:
        wanted[item["category"]] += int(item["quantity"])
    problems = order_service.check_eligibility(emp, wanted)
    if problems:
        return fmt.eligibility_error(problems)

    ctx = _ctx(s)
    option = ctx.get("delivery_option") or "OFFICE"
    items = [
        OrderItemIn(product_id=i["product_id"], size=i["size"], quantity=int(i["quantity"]))
        for i in cart
    ]
    try:
        order = order_service.create_order(
            db,
            company_id=emp.company_id,
            employee=emp,
            items=items,
            delivery_option=option,
            shipping_address=ctx.get("delivery_address") if option == "HOME" else None,
            source="WHATSAPP",
        )
    except HTTPException as e:
        logger.warning("WhatsApp order failed for %s: %s", s.phone, e.detail)
        return fmt.error(f"Failed to create order: {e.detail}")

    _reset(s)
    return fmt.order_confirmation(order)


def _past(db, s, emp, msg, cmd) -> str:
    ids = _ctx(s).get("order_ids") or []
    idx = _pick(cmd, len(ids))
    if idx is None:
        return _main_menu(db, s, emp, msg, cmd)
    order = db.get(Order, ids[idx])
    s.state = States.CHECK_STATUS
    return fmt.order_status(order)


def _check_status(db, s, emp, msg, cmd) -> str:
    ids = _ctx(s).get("order_ids") or []
    idx = _pick(cmd, len(ids))
    order = db.get(Order, ids[idx]) if idx is not None else _find_order(db, emp.id, msg)
    if order is None:
        return fmt.error("Order not found. Please check the order number and try again.")
    return fmt.order_status(order)


def _help(db, s, emp, msg, cmd) -> str:
    s.state = States.MAIN_MENU
    return _main_menu(db, s, emp, msg, cmd)


_HANDLERS = {
    States.MAIN_MENU: _main_menu,
    States.ORDER_SELECT_ITEM: _select_item,
    States.ORDER_SET_SIZE: _set_size,
    States.ORDER_SET_QTY: _set_qty,
    States.ORDER_REVIEW: _review,
    States.ORDER_DELIVERY: _delivery,
    States.VIEW_PAST_ORDERS: _past,
    States.CHECK_STATUS: _check_status,
    States.HELP: _help,
}
