from __future__ import annotations

import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

from .settings import settings

log = logging.getLogger(__name__)


def send_email(subject: str, body: str) -> bool:
    """Send an email if SMTP settings are configured.

    Environment variables:
      - NWD_ENABLE_EMAIL=true
      - NWD_SMTP_HOST / NWD_SMTP_PORT
      - NWD_SMTP_USER / NWD_SMTP_PASSWORD
      - NWD_EMAIL_FROM / NWD_EMAIL_TO
    """
    if not settings.enable_email:
        return False
    if not all(
        [
            settings.smtp_host,
            settings.smtp_port,
            settings.smtp_user,
            settings.smtp_password,
            settings.email_from,
            settings.email_to,
        ]
    ):
        return False

    try:
        msg = MIMEMultipart()
        msg["From"] = settings.email_from
        msg["To"] = settings.email_to
        msg["Subject"] = subject
        msg.attach(MIMEText(body, "plain"))

        with smtplib.SMTP(settings.smtp_host, settings.smtp_port, timeout=10) as server:
            server.starttls()
            server.login(settings.smtp_user, settings.smtp_password)
            server.sendmail(settings.email_from, [settings.email_to], msg.as_string())
    except Exception as e:
        # The transaction is already accepted; a lost alert must not fail the sweep.
        log.warning("Alert email not sent: %s: %s", type(e).__name__, e)
        return False
    return True


def node_changed(chain: str, owner: str, activated: bool, url: str, tx_id: str, detail: str = "") -> bool:
    subject = f"{'ACTIVATED' if activated else 'DISABLED'}: {owner} on {chain}"
    body = (
        f"Chain: {chain}\nNode owner: {owner}\nURL: {url}\nStatus: {'UP' if activated else 'DOWN'}\n"
        f"Health check: {detail or ('ok' if activated else 'unhealthy')}\nTransaction: {tx_id}"
    )
    return send_email(subject, body)
