import smtplib
import logging
import re
from email.message import EmailMessage
from app.core.config import settings

logger = logging.getLogger(__name__)

_TAGS = re.compile(r"<[^>]+>")


def html_to_text(html: str) -> str:
    text = re.sub(r"<br\s*/?>|</p>", "\n", html)
    return _TAGS.sub("", text).strip()


def send_email(to_email: str, subject: str, body: str, html: str | None = None) -> dict:
    """Deliver one message. Returns a small receipt stored as the job result."""
    if settings.EMAIL_BACKEND == "console":
        logger.info(f"[console email] to={to_email} subject={subject!r}\n{body}")
        return {"messageId": None, "response": "console"}

    smtp_host = settings.SMTP_HOST
    smtp_port = settings.SMTP_PORT
    smtp_user = settings.SMTP_USER
    smtp_pass = settings.SMTP_PASSWORD

    if not smtp_host:
        raise RuntimeError("SMTP host not configured (SMTP_HOST)")

    sender = settings.SMTP_FROM or smtp_user
    msg = EmailMessage()
    msg["Subject"] = subject
    msg["From"] = f"{settings.SENDER_NAME} <{sender}>"
    msg["To"] = to_email
    msg.set_content(body)
    if html:
        msg.add_alternative(html, subtype="html")

    try:
        with smtplib.SMTP(smtp_host, smtp_port, timeout=10) as server:
            server.ehlo()
            if smtp_port == 587:
                server.starttls()
                server.ehlo()
            if smtp_user and smtp_pass:
                server.login(smtp_user, smtp_pass)
            refused = server.send_message(msg)
        return {"messageId": msg.get("Message-ID"), "response": f"refused={list(refused)}"}
    except (smtplib.SMTPException, OSError):
        logger.exception("Failed to send email")
        raise


def _layout(title: str, paragraphs: list[str]) -> str:
    body = "".join(f"<p>{p}</p>" for p in paragraphs)
    return (
        f"<div style=\"font-family:Arial,sans-serif;max-width:560px\">"
        f"<h2>{title}</h2>{body}"
        f"<br/><p>{settings.SENDER_NAME}</p></div>"
    )


def render_account_setup(name: str, link: str, role_label: str) -> str:
    return _layout(
        "Ustaw hasło do konta",
        [
            f"Dzień dobry {name},",
            f"Utworzono dla Ciebie konto ({role_label}) w systemie {settings.APP_NAME}.",
            f"Aby ustawić hasło, kliknij w link: <a href=\"{link}\">{link}</a>",
            "Link jest ważny przez ograniczony czas.",
        ],
    )


def render_password_reset(name: str, link: str) -> str:
    return _layout(
        "Resetowanie hasła",
        [
            f"Dzień dobry {name},",
            f"Aby ustawić nowe hasło, kliknij w link: <a href=\"{link}\">{link}</a>",
            "Jeśli to nie Ty prosiłeś o zmianę hasła, zignoruj tę wiadomość.",
        ],
    )


def render_email_verification(name: str, link: str) -> str:
    return _layout(
        "Potwierdź adres e-mail",
        [
            f"Dzień dobry {name},",
            f"Dziękujemy za rejestrację w {settings.APP_NAME}.",
            f"Aby potwierdzić adres e-mail, kliknij w link: <a href=\"{link}\">{link}</a>",
        ],
    )


def render_appointment_cancelled(
    patient_name: str,
    doctor_name: str,
    appointment_datetime: str,
    visit_mode: str,
    appointment_type: str,
    reason: str | None = None,
) -> str:
    paragraphs = [
        f"Dzień dobry {patient_name},",
        f"Twoja wizyta u lekarza {doctor_name} zaplanowana na {appointment_datetime} została anulowana.",
        f"Rodzaj wizyty: {appointment_type} ({visit_mode}).",
    ]
    if reason:
        paragraphs.append(f"Powód: {reason}")
    paragraphs.append("W razie pytań skontaktuj się z rejestracją.")
    return _layout("Wizyta została anulowana", paragraphs)


def render_appointment_reminder(
    patient_name: str,
    doctor_name: str,
    appointment_datetime: str,
    visit_mode: str,
    appointment_type: str,
) -> str:
    return _layout(
        "Przypomnienie o wizycie",
        [
            f"Dzień dobry {patient_name},",
            f"Przypominamy o wizycie u lekarza {doctor_name}: {appointment_datetime}.",
            f"Rodzaj wizyty: {appointment_type} ({visit_mode}).",
        ],
    )
