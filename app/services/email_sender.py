"""Order e-mails over SMTP: confirmation, cancellation and payment approval."""
import logging
import smtplib
from decimal import Decimal
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from html import escape

from app.core.config import is_mail_configured, settings
from app.models import Order, User

log = logging.getLogger("shopcore.email")


def send_email(to: str, subject: str, html_body: str) -> bool:
    """Sends a single HTML e-mail. True on success; failures are logged, never raised."""
    if not is_mail_configured():
        log.warning("SMTP not configured; email not sent to %s", to)
        return False
    host = (settings.smtp_host or "").strip()
    port = int(settings.smtp_port or 587)
    user = (settings.smtp_user or "").strip()
    password = (settings.smtp_password or "").strip()
    from_addr = (settings.smtp_from or "noreply@shopcore.local").strip()
    from_name = (settings.smtp_from_name or "").strip()
    msg = MIMEMultipart("alternative")
    msg["Subject"] = subject
    msg["From"] = f"{from_name} <{from_addr}>" if from_name else from_addr
    msg["To"] = to
    msg.attach(MIMEText(html_body, "html", "utf-8"))
    try:
        with smtplib.SMTP(host, port, timeout=15) as smtp:
            if settings.smtp_use_tls:
                smtp.starttls()
            if user and password:
                smtp.login(user, password)
            smtp.sendmail(from_addr, [to], msg.as_string())
        log.info("Email sent to %s subject=%s", to, subject[:50])
        return True
    except Exception as e:
        log.exception("Failed to send email to %s: %s", to, e)
        return False


def _money(value) -> str:
    return f"{Decimal(value or 0):.2f}"


def _layout(title: str, body: str) -> str:
    brand = escape(settings.smtp_from_name or "Shopcore")
    return f"""<!DOCTYPE html>
<html>
<head><meta charset="UTF-8" /><title>{escape(title)}</title></head>
<body style="margin:0;padding:24px;background-color:#f1f5f9;font-family:'Segoe UI',system-ui,sans-serif;">
  <div style="max-width:520px;margin:0 auto;background:#ffffff;border-radius:12px;padding:24px;">
    <div style="font-size:14px;letter-spacing:0.12em;color:#0d9488;font-weight:700;">{brand}</div>
    <h1 style="font-size:20px;color:#1a2d42;">{escape(title)}</h1>
    {body}
  </div>
</body>
</html>"""


def _items_table(order: Order) -> str:
    rows = "".join(
        f"<tr><td>{escape(item.product.name if item.product else str(item.product_id))}</td>"
        f"<td style=\"text-align:center;\">{item.quantity}</td>"
        f"<td style=\"text-align:right;\">{_money(item.price)}</td></tr>"
        for item in order.items
    )
    discount = f"<p>Discount: {_money(order.discount)}</p>" if order.discount else ""
    return (
        f"<table width=\"100%\" style=\"font-size:14px;color:#334155;\">{rows}</table>"
        f"{discount}<p><strong>Total: {_money(order.total)}</strong></p>"
    )


def build_order_confirmation_html(order: Order, user: User) -> tuple[str, str]:
    subject = f"Order #{order.id} received"
    body = (
        f"<p>Hi {escape(user.full_name or user.email)}, we received your order.</p>"
        f"{_items_table(order)}"
        f"<p>Payment method: {order.payment_method.value}</p>"
    )
    return subject, _layout(subject, body)


def build_order_cancelled_html(order: Order, user: User, reason: str | None, was_paid: bool) -> tuple[str, str]:
    subject = f"Order #{order.id} cancelled"
    body = f"<p>Hi {escape(user.full_name or user.email)}, your order #{order.id} was cancelled.</p>"
    if reason:
        body += f"<p>Reason: {escape(reason)}</p>"
    if was_paid:
        body += f"<p>The amount of {_money(order.total)} will be refunded to your original payment method.</p>"
    return subject, _layout(subject, body)


def build_payment_approved_html(order: Order, user: User) -> tuple[str, str]:
    subject = f"Payment approved for order #{order.id}"
    body = (
        f"<p>Hi {escape(user.full_name or user.email)}, your payment of "
        f"{_money(order.total)} was approved. Thank you!</p>"
    )
    return subject, _layout(subject, body)


class EmailNotifier:
    """Customer notifications for order lifecycle events. Best-effort: returns False instead of raising."""

    def send_order_confirmation(self, user: User, order: Order) -> bool:
        subject, html = build_order_confirmation_html(order, user)
        return send_email(user.email, subject, html)

    def send_order_cancelled(self, user: User, order: Order, reason: str | None = None, was_paid: bool = False) -> bool:
        subject, html = build_order_cancelled_html(order, user, reason, was_paid)
        return send_email(user.email, subject, html)

    def send_payment_approved(self, user: User, order: Order) -> bool:
        subject, html = build_payment_approved_html(order, user)
        return send_email(user.email, subject, html)
