"""
Notification texts for service order events
WhatsApp-flavoured markdown (*bold*, _italic_); SMS receives the same text
"""

from datetime import datetime
from typing import Optional

from ...config import SUPPORT_PHONE
from .codes import format_order_code
from .payments import to_money
from .statuses import notification_title, payment_method_text, status_emoji, status_text

DIVIDER = "━━━━━━━━━━━━━━━━━━━━"


def format_currency(amount) -> str:
    return f"${to_money(amount):,.2f}"


def _appliance_lines(order) -> str:
    lines = []
    for link in order.appliances:
        appliance = link.client_appliance
        if appliance is None:
            continue
        label = " ".join(
            part for part in (appliance.appliance_type, appliance.brand, appliance.name) if part
        )
        lines.append(f"▸ {label}\n   Reported fault: {link.falla or 'Under diagnosis'}")
        if link.solucion:
            lines.append(f"   Solution: {link.solucion}")
    return "\n".join(lines) or "▸ No appliances registered"


def _order_label(order) -> str:
    return order.order_number or format_order_code(order.order_code)


def _client_name(order) -> str:
    return order.client.name if order.client else "Not specified"


def order_created_operator(order, now: Optional[datetime] = None) -> str:
    now = now or datetime.now()
    kind = "🟡 PRE-ORDER" if order.status == "PREORDER" else "🟢 REGULAR ORDER"
    phone = order.client.phone if order.client else None
    return (
        f"🛠️ *NEW ORDER CREATED*\n\n"
        f"📋 *Order #{_order_label(order)}*\n"
        f"📅 {now:%A %d %B} ⏰ {now:%H:%M}\n\n"
        f"{DIVIDER}\n"
        f"👤 *Client:* {_client_name(order)}\n"
        f"📞 *Contact:* {phone or 'Not available'}\n"
        f"📌 *Type:* {kind}\n\n"
        f"{DIVIDER}\n"
        f"{_appliance_lines(order)}\n\n"
        f"📝 *Description:*\n{order.description or 'No additional details'}\n\n"
        f"🔧 *Initial status:* {status_emoji(order.status)} {status_text(order.status)}"
    )


def order_created_client(order, now: Optional[datetime] = None) -> str:
    now = now or datetime.now()
    return (
        f"🎉 *ORDER REGISTERED*\n\n"
        f"Thank you for trusting us, {_client_name(order)}!\n\n"
        f"🔖 Number: #{_order_label(order)}\n"
        f"📅 Date: {now:%d %B} 🕒 {now:%H:%M}\n\n"
        f"{DIVIDER}\n"
        f"{_appliance_lines(order)}\n\n"
        f"{status_emoji(order.status)} *{status_text(order.status)}*\n\n"
        f"Next steps:\n"
        f"1. Initial technical review (24-48 hrs)\n"
        f"2. We contact you to confirm details\n"
        f"3. Service scheduling\n\n"
        f"📌 *Support:* {SUPPORT_PHONE or 'Contact the shop'}"
    )


def status_changed_operator(order, old_status: str, new_status: str) -> str:
    title, emoji = notification_title(new_status, bool(order.rescheduled_from_cancellation))
    text = (
        f"{emoji} *{title}* {emoji}\n\n"
        f"🆔 *Order:* #{_order_label(order)}\n"
        f"👤 *Client:* {_client_name(order)}\n"
        f"\n📊 *Status change:* {status_text(old_status)} ➡️ {status_text(new_status)}\n"
        f"\n📌 *APPLIANCES:*\n{_appliance_lines(order)}\n"
    )
    return text + _status_details(order, new_status)


def status_changed_client(order, old_status: str, new_status: str, now: Optional[datetime] = None) -> str:
    now = now or datetime.now()
    title, emoji = notification_title(new_status, bool(order.rescheduled_from_cancellation))
    text = (
        f"{emoji} *{title}*\n\n"
        f"🆔 *Order No.:* #{_order_label(order)}\n"
        f"👤 *Client:* {_client_name(order)}\n\n"
        f"📊 *Previous status:* {status_text(old_status)}\n"
        f"📊 *New status:* {status_text(new_status)}\n"
        f"📅 *Date:* {now:%d/%m/%Y}\n"
        f"\n📌 *APPLIANCES:*\n{_appliance_lines(order)}\n"
    )
    text += _status_details(order, new_status)
    return text + f"\n📞 For questions call {SUPPORT_PHONE or 'the shop'}"


def _status_details(order, new_status: str) -> str:
    details = ""
    if order.description:
        details += f"\n📝 *DETAILS:*\n_{order.description}_\n"
    if order.presupuesto_amount:
        details += f"\n💰 *Budget:* {format_currency(order.presupuesto_amount)}\n"
    if new_status == "CANCELLED" and order.cancellation_notes:
        details += f"\n❌ *Reason:* _{order.cancellation_notes}_\n"
    if new_status == "GARANTIA_APLICADA" and order.razon_garantia:
        details += f"\n🛡️ *Warranty reason:* _{order.razon_garantia}_\n"
    return details


def payment_received(order, payment) -> str:
    return (
        f"💰 *PAYMENT RECEIVED*\n\n"
        f"🆔 *Order:* #{_order_label(order)}\n"
        f"👤 *Client:* {_client_name(order)}\n"
        f"💵 *Amount:* {format_currency(payment.amount)}\n"
        f"💳 *Method:* {payment_method_text(payment.payment_method)}\n"
        + (f"🔖 *Reference:* {payment.reference}\n" if payment.reference else "")
        + f"\n📊 *Paid so far:* {format_currency(order.paid_amount)} of "
        f"{format_currency(order.total_amount)}"
    )


def technician_assigned(order, technician) -> str:
    return (
        f"👨‍🔧 *NEW ASSIGNMENT*\n\n"
        f"Hello {technician.name}, you have been assigned order #{_order_label(order)}.\n\n"
        f"👤 *Client:* {_client_name(order)}\n"
        f"📌 *APPLIANCES:*\n{_appliance_lines(order)}"
    )


def technician_unassigned(order, technician) -> str:
    return (
        f"🔄 *ASSIGNMENT REMOVED*\n\n"
        f"Hello {technician.name}, order #{_order_label(order)} is no longer assigned to you."
    )


def delivery_note_created(order, note) -> str:
    return (
        f"🚚 *EQUIPMENT DELIVERED*\n\n"
        f"🆔 *Order:* #{_order_label(order)}\n"
        f"🧾 *Delivery note:* {note.note_number}\n"
        f"✍️ *Received by:* {note.received_by}\n"
        + (f"💵 *Amount:* {format_currency(note.amount)}\n" if note.amount is not None else "")
        + f"\n📞 For questions call {SUPPORT_PHONE or 'the shop'}"
    )
