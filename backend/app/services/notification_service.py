# Overview: Outbound notification stub; renders small built-in templates and logs instead of sending.

from __future__ import annotations

from html import escape

from flask import current_app


def _render_order_confirmation(data: dict) -> str:
    order = data.get("order") or {}
    rows = "".join(
        f"<li>{escape(str(item.get('product_name') or item.get('product_id')))} x {item.get('quantity')}</li>"
        for item in order.get("items", [])
    )
    return (
        "<h1>Thank you for your order!</h1>"
        f"<p>Your order ID is {order.get('id')}.</p>"
        f"<ul>{rows}</ul>"
        f"<p>Total: {order.get('total_cents', 0) / 100:.2f}</p>"
    )


def _render_reward_redeemed(data: dict) -> str:
    coupon = data.get("coupon") or {}
    reward = data.get("reward") or {}
    return (
        f"<h1>You redeemed {escape(str(reward.get('name', 'a reward')))}</h1>"
        f"<p>Your coupon code is <strong>{escape(str(coupon.get('code')))}</strong>.</p>"
        f"<p>It expires at {coupon.get('expires_at')}.</p>"
    )


def _render_password_reset(data: dict) -> str:
    return (
        f"<p>Hi {escape(str(data.get('name') or 'there'))},</p>"
        "<p>Use this code to reset your password:</p>"
        f"<p><code>{escape(str(data.get('token')))}</code></p>"
        f"<p>It expires in {data.get('expires_minutes', 60)} minutes and works once.</p>"
    )


TEMPLATES = {
    "order-confirmation": _render_order_confirmation,
    "reward-redeemed": _render_reward_redeemed,
    "password-reset": _render_password_reset,
}


def render(template: str, data: dict | None = None) -> str:
    renderer = TEMPLATES.get(template)
    if renderer is None:
        raise ValueError(f"Unknown notification template: {template}")
    return renderer(data or {})


def send_notification(
    to: str,
    subject: str,
    html: str | None = None,
    template: str | None = None,
    data: dict | None = None,
) -> bool:
    """
    Send (log) a notification.

    Either `html` or `template` (+ `data`) must be given. Delivery problems
    are logged and reported as False; they never fail the caller's request.
    """
    logger = current_app.logger
    if not to:
        logger.warning("Notification %r skipped: no recipient", subject)
        return False

    try:
        body = html if html is not None else render(template or "", data)
    except ValueError:
        logger.exception("Failed to render notification %r", subject)
        return False

    if not current_app.config.get("NOTIFICATIONS_ENABLED"):
        logger.info("Notification (log only) to=%s subject=%r bytes=%d", to, subject, len(body))
        return True

    # No transport is wired in; enabled mode records the full message.
    logger.info(
        "Notification from=%s to=%s subject=%r\n%s",
        current_app.config.get("MAIL_FROM"), to, subject, body,
    )
    return True
