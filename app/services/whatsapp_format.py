# FILE: app/services/whatsapp_format.py
"""
Plain-text replies for the WhatsApp ordering bot.
WhatsApp renders *bold*; amounts are shown as ₹<amount>.
"""
from __future__ import annotations

from decimal import Decimal
from typing import Any, Dict, Iterable, List, Mapping, Optional

CATEGORY_LABELS = {
    "shirt": "👔 Shirts",
    "pant": "👖 Pants",
    "shoe": "👟 Shoes",
    "jacket": "🧥 Jackets",
}

STATUS_LINES = {
    "Awaiting approval": "⏳ Your order is pending approval from your manager.",
    "Awaiting fulfilment": "📦 Your order has been approved and is being processed.",
    "Dispatched": "🚚 Your order has been dispatched and is on its way!",
    "Delivered": "✅ Your order has been delivered.",
    "Cancelled": "❌ This order has been cancelled.",
}

BACK_TO_MENU = "Type *MENU* to return to main menu."


def money(amount: Any) -> str:
    value = Decimal(str(amount or 0)).quantize(Decimal("0.01"))
    if value == value.to_integral_value():
        return f"₹{int(value)}"
    return f"₹{value}"


def _date(value) -> str:
    return value.strftime("%d/%m/%Y") if value else "N/A"


def main_menu() -> str:
    return (
        "👕 *Uniform Distribution System*\n\n"
        "Welcome! How can I help you today?\n\n"
        "*1.* Place New Order\n"
        "*2.* View Past Orders\n"
        "*3.* Check Order Status\n"
        "*4.* Help\n\n"
        "Reply with the number (1-4) or type:\n"
        "• *MENU* - Return to main menu\n"
        "• *STATUS* - Check open orders\n"
        "• *HELP* - Get support information"
    )


def product_list(products: List[Mapping[str, Any]], remaining: Mapping[str, int]) -> str:
    """products are numbered 1..n across categories, in the given order."""
    if not products:
        return (
            "❌ *No Eligible Products*\n\n"
            "You don't have any remaining eligibility for uniform items at this time.\n\n"
            + BACK_TO_MENU
        )

    lines = ["📦 *Available Products*", ""]
    current = None
    for idx, p in enumerate(products, start=1):
        cat = p.get("category") or "other"
        if cat != current:
            if current is not None:
                lines.append("")
            label = CATEGORY_LABELS.get(cat, cat.upper())
            lines.append(f"*{label}* (Remaining: {remaining.get(cat, 0)})")
            current = cat
        lines.append(f"{idx}. {p['name']} - {money(p.get('price'))}")
    lines.append("")
    lines.append("Reply with the product number to select, or type *MENU* to go back.")
    return "\n".join(lines)


def size_prompt(name: str, price: Any, sizes: Iterable[str]) -> str:
    return (
        f"📦 *{name}*\n\n"
        f"💰 Price: {money(price)}\n"
        f"📏 Available Sizes: {', '.join(sizes)}\n\n"
        'Select a size by typing the size (e.g., "M", "L", "XL"), or type *BACK* to go back.'
    )


def quantity_prompt(name: str, size: str, max_qty: int) -> str:
    return (
        f"📦 *{name}*\nSize: {size}\n\n"
        f"Enter quantity (1-{max_qty}), or type *BACK* to change size."
    )


def cart_total(cart: Iterable[Mapping[str, Any]]) -> Decimal:
    return sum(
        (Decimal(str(i.get("price") or 0)) * int(i.get("quantity") or 0) for i in cart),
        Decimal("0"),
    )


def cart_review(cart: List[Mapping[str, Any]]) -> str:
    if not cart:
        return "🛒 *Your cart is empty*\n\nType *MENU* to start shopping."

    lines = ["🛒 *Order Review*", ""]
    for idx, item in enumerate(cart, start=1):
        line_total = Decimal(str(item.get("price") or 0)) * int(item.get("quantity") or 0)
        lines.append(f"{idx}. {item['name']}")
        lines.append(f"   Size: {item['size']} | Qty: {item['quantity']} | {money(line_total)}")
        lines.append("")
    lines.append(f"*Total: {money(cart_total(cart))}*")
    lines.append("")
    lines.append("Choose delivery option:")
    lines.append("*1.* Office Pickup (Free)")
    lines.append("*2.* Home Delivery")
    lines.append("")
    lines.append("Reply with 1 or 2, or type *EDIT* to modify cart.")
    return "\n".join(lines)


def delivery_prompt(option: str) -> str:
    if option == "HOME":
        return (
            "🏠 *Home Delivery Selected*\n\n"
            "Please provide your delivery address, or type *CONFIRM* to use your registered address."
        )
    return (
        "✅ *Office Pickup Selected*\n\n"
        "Your order will be delivered to your office location.\n\n"
        "Type *CONFIRM* to place the order, or *BACK* to change delivery option."
    )


def address_saved(address: str) -> str:
    return (
        "✅ *Address Saved*\n\n"
        f"Delivery Address: {address}\n\n"
        "Type *CONFIRM* to place the order, or *BACK* to change."
    )


def order_confirmation(order) -> str:
    items = list(order.items or [])
    lines = [
        "✅ *Order Confirmed!*",
        "",
        f"📋 Order ID: {order.order_number}",
        f"📊 Status: {order.status}",
        f"📦 Items: {len(items)}",
        f"💰 Total: {money(order.total)}",
        f"🕒 Estimated delivery: {order.estimated_delivery_time}",
        "",
    ]
    if items:
        lines.append("*Items:*")
        for idx, it in enumerate(items, start=1):
            lines.append(f"{idx}. {it.product_name} - {it.size} x {it.quantity}")
        lines.append("")
    lines.append("You will receive updates on your order status.")
    lines.append("")
    lines.append(BACK_TO_MENU)
    return "\n".join(lines)


def order_list(orders: List[Any], *, title: str = "Your Orders") -> str:
    if not orders:
        return (
            "📋 *No Past Orders*\n\n"
            "You haven't placed any orders yet.\n\n"
            "Type *MENU* to start shopping, or *1* to place a new order."
        )

    lines = [f"📋 *{title}* ({len(orders)})", ""]
    for idx, o in enumerate(orders[:10], start=1):
        lines.append(f"{idx}. *Order {o.order_number}*")
        lines.append(f"   Status: {o.status}")
        lines.append(f"   Total: {money(o.total)}")
        lines.append(f"   Date: {_date(o.created_at)}")
        lines.append("")
    if len(orders) > 10:
        lines.append("(Showing first 10 orders)")
        lines.append("")
    lines.append("Type an order number to check status, or *MENU* to go back.")
    return "\n".join(lines)


def no_open_orders() -> str:
    return "📋 *No Open Orders*\n\nYou don't have any pending orders.\n\n" + BACK_TO_MENU


def order_status(order: Optional[Any]) -> str:
    if order is None:
        return (
            "❌ *Order Not Found*\n\n"
            "The order you're looking for doesn't exist.\n\n" + BACK_TO_MENU
        )

    address = order.shipping_address or "Not specified"
    lines = [
        "📋 *Order Status*",
        "",
        f"Order ID: {order.order_number}",
        f"Status: *{order.status}*",
        f"Total: {money(order.total)}",
        f"Date: {_date(order.created_at)}",
        f"Delivery: {address}",
        "",
    ]
    items = list(order.items or [])
    if items:
        lines.append("*Items:*")
        for idx, it in enumerate(items, start=1):
            lines.append(f"{idx}. {it.product_name} - {it.size} x {it.quantity}")
        lines.append("")
    if order.status in STATUS_LINES:
        lines.append(STATUS_LINES[order.status])
        lines.append("")
    lines.append(BACK_TO_MENU)
    return "\n".join(lines)


def help_text() -> str:
    return (
        "ℹ️ *Help & Support*\n\n"
        "*Commands:*\n"
        "• *MENU* - Return to main menu\n"
        "• *STATUS* - Check all open orders\n"
        "• *HELP* - Show this help message\n\n"
        "*Support:*\n"
        "For assistance with orders, eligibility, or technical issues, please contact your HR department.\n\n"
        "*Order Process:*\n"
        "1. Select eligible products\n"
        "2. Choose size and quantity\n"
        "3. Review your cart\n"
        "4. Select delivery option\n"
        "5. Confirm order\n\n" + BACK_TO_MENU
    )


def error(message: str) -> str:
    return (
        "❌ *Error*\n\n"
        f"{message}\n\n"
        "Type *MENU* to return to main menu, or *HELP* for assistance."
    )


def eligibility_error(problems: List[str]) -> str:
    body = "\n".join(f"• {p}" for p in problems)
    return f"❌ *Eligibility Error*\n\n{body}\n\n{BACK_TO_MENU}"


def auth_success(name: str) -> str:
    return f"✅ *Welcome, {name}!*\n\nYou've been successfully authenticated.\n\n{main_menu()}"


def auth_failure() -> str:
    return (
        "❌ *Authentication Failed*\n\n"
        "We couldn't find an employee account linked to this phone number.\n\n"
        "Please ensure:\n"
        "• Your phone number is registered in the system\n"
        "• You're using the correct phone number format\n\n"
        "Type *HELP* for support, or contact HR for assistance."
    )


def product_snapshot(p) -> Dict[str, Any]:
    return {
        "id": p.id,
        "name": p.name,
        "category": p.category,
        "price": str(p.price or 0),
        "sizes": list(p.size_list),
    }
