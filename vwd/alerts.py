from __future__ import annotations

import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

from .settings import Settings, settings as default_settings


def email_configured(cfg: Settings) -> bool:
    return cfg.enable_email and all(
        [
            cfg.smtp_host,
            cfg.smtp_port,
            cfg.smtp_user,
            cfg.smtp_password,
            cfg.email_from,
            cfg.email_to,
        ]
    )


def send_email(subject: str, body: str, cfg: Settings | None = None) -> bool:
    """Send an email if SMTP settings are configured.

    Environment variables:
      - VWD_ENABLE_EMAIL=true
      - VWD_SMTP_HOST / VWD_SMTP_PORT
      - VWD_SMTP_USER / VWD_SMTP_PASSWORD
      - VWD_EMAIL_FROM / VWD_EMAIL_TO
    """
    cfg = cfg or default_settings
    if not email_configured(cfg):
        return False

    try:
        msg = MIMEMultipart()
        msg["From"] = cfg.email_from
        msg["To"] = cfg.email_to
        msg["Subject"] = subject
        msg.attach(MIMEText(body, "plain"))

        server = smtplib.SMTP(cfg.smtp_host, cfg.smtp_port)
        server.starttls()
        server.login(cfg.smtp_user, cfg.smtp_password)
        server.sendmail(cfg.email_from, [cfg.email_to], msg.as_string())
        server.quit()
        return True
    except (smtplib.SMTPException, OSError):
        return False
