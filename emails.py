"""HTML bodies for transactional mail. Every interpolated value is escaped."""
from html import escape

_CARD = (
    '<div style="font-family:Arial,sans-serif;max-width:500px;margin:auto;padding:24px;'
    'background:#faf7ff;border-radius:12px;border:1px solid #eee;">{body}</div>'
)
_FOOTER = '<hr style="margin:24px 0;border:none;border-top:1px solid #eee;"><small style="color:#888;">{}</small>'


def _card(body: str) -> str:
    return _CARD.format(body=body)


def welcome(name, email, phone, registered_at) -> str:
    return _card(
        f'<h2 style="color:#7a4eab;">Welcome, {escape(name)}!</h2>'
        "<p>Thank you for signing up at <b>Sumansi</b>.<br/>We're excited to have you join our family.</p>"
        '<p style="margin:18px 0 8px 0;">Your account details:</p>'
        f"<ul><li><b>Name:</b> {escape(name)}</li><li><b>Email:</b> {escape(email)}</li>"
        f"<li><b>Phone:</b> {escape(phone)}</li>"
        f"<li><b>Registration Date:</b> {registered_at:%Y-%m-%d %H:%M} UTC</li></ul>"
        '<p style="margin-top:24px;">Happy Shopping!<br/>Team Sumansi</p>'
        + _FOOTER.format("If you did not sign up, please ignore this email.")
    )


def login_notice(name, email, logged_in_at) -> str:
    return _card(
        f'<h2 style="color:#7a4eab;">Hello, {escape(name)}!</h2>'
        "<p>Your account was just logged in at <b>Sumansi</b>.</p>"
        f"<ul><li><b>Email:</b> {escape(email)}</li>"
        f"<li><b>Login Date &amp; Time:</b> {logged_in_at:%Y-%m-%d %H:%M} UTC</li></ul>"
        "<p style=\"margin-top:24px;\">If this wasn't you, please reset your password immediately.</p>"
        + _FOOTER.format("This is an automated notification from Sumansi.")
    )


def password_reset(name, reset_url) -> str:
    return _card(
        '<h2 style="color:#7a4eab;">Password Reset Request</h2>'
        f"<p>Hello, {escape(name)}.<br/>We received a request to reset your password for your Sumansi account.</p>"
        f'<p><a href="{escape(reset_url, quote=True)}" style="background:#7a4eab;color:#fff;padding:10px 18px;'
        'border-radius:6px;text-decoration:none;font-weight:bold;">Reset Password</a></p>'
        "<p>This link will expire in 30 minutes.</p>"
        + _FOOTER.format("If you did not request this, please ignore this email.")
    )


def password_changed(name) -> str:
    return _card(
        '<h2 style="color:#7a4eab;">Password Changed</h2>'
        f"<p>Hello, {escape(name)}.<br/>Your password has been changed successfully.</p>"
        + _FOOTER.format("If you did not do this, please contact support immediately.")
    )


def _order_body(heading, order_id, payment_id, address, items, total) -> str:
    items_html = "".join(
        f"<li><strong>{escape(i['name'])}</strong> (Qty: {i['qty']}, Size: {escape(str(i['size']))}) "
        f"- &#8377;{i['price']}, Color: {escape(i.get('color') or 'N/A')}</li>"
        for i in items
    )
    payment_line = f"<p><strong>Payment ID:</strong> {escape(payment_id)}</p>" if payment_id else ""
    location = ", ".join(escape(str(address.get(k, ""))) for k in ("address", "city", "state", "pincode"))
    return (
        '<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto; padding: 20px;">'
        f'<h2 style="color: #d84315;">{heading}</h2>'
        f"<p><strong>Order ID:</strong> {escape(order_id)}</p>{payment_line}"
        '<h3 style="color: #333;">Shipping Details:</h3><ul style="list-style: none; padding: 0;">'
        f"<li><strong>Name:</strong> {escape(address.get('fullName', ''))}</li>"
        f"<li><strong>Email:</strong> {escape(address.get('email', ''))}</li>"
        f"<li><strong>Phone:</strong> {escape(address.get('phone', ''))}</li>"
        f"<li><strong>Address:</strong> {location}</li>"
        f"<li><strong>Landmark:</strong> {escape(address.get('landmark') or 'N/A')}</li></ul>"
        f'<h3 style="color: #333;">Order Items:</h3><ul>{items_html}</ul>'
        f"<p><strong>Total Amount:</strong> &#8377;{total}</p>"
        "<p style=\"color: #777;\">We'll notify you once your order is shipped.</p></div>"
    )


def order_confirmation(order: dict) -> str:
    return _order_body(
        "Order Confirmation",
        order["razorpayOrderId"],
        order.get("paymentId"),
        order["shippingAddress"],
        order["items"],
        order["totalAmount"],
    )


def cod_order(order: dict) -> str:
    return _order_body(
        "There is a new COD order.",
        order["razorpayOrderId"],
        None,
        order["shippingAddress"],
        order["items"],
        order["totalAmount"],
    )


def contact_message(full_name, email, phone, message) -> str:
    return (
        "<h2>New Contact Form Submission</h2>"
        f"<p><strong>Name:</strong> {escape(full_name)}</p>"
        f"<p><strong>Email:</strong> {escape(email)}</p>"
        f"<p><strong>Phone:</strong> {escape(phone)}</p>"
        f"<p><strong>Message:</strong> {escape(message)}</p>"
    )
