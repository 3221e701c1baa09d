from __future__ import annotations

import smtplib
from typing import Any

from flask import render_template
from flask_mail import Mail, Message

from app.staffing.i18n import translate
from app.staffing.models import User

mail = Mail()


class MailTransportError(RuntimeError):
    pass


def send_translated(user: User, subject_key: str, template: str, **context: Any) -> None:
    """
    Render `emails/<template>.txt` in the recipient's language and send it.
    Raises MailTransportError when the SMTP transport fails.
    """
    locale = user.settings.language if user.settings else None
    subject = translate(subject_key, locale=locale, **context)
    body = render_template(f"emails/{template}.txt", user=user, locale=locale, **context)
    msg = Message(subject=subject, recipients=[user.email], body=body)
    try:
        mail.send(msg)
    except (smtplib.SMTPException, OSError) as e:
        raise MailTransportError(f"Sending {subject_key!r} to {user.email} failed: {e}") from e
