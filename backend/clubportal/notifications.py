import logging
from urllib.parse import quote

from .config import settings

logger = logging.getLogger(__name__)


def send_email(to: str, subject: str, body: str) -> None:
    logger.info("[EMAIL] to=%s subj=%s body=%s", to, subject, body)


def verification_url(email: str, token: str) -> str:
    return f"{settings.app_base_url}/verify-email?token={token}&email={quote(email)}"


def send_verification_email(email: str, token: str) -> None:
    send_email(
        email,
        "Verify your email",
        f"Finish creating your account: {verification_url(email, token)}",
    )


def send_request_decision(email: str, club_name: str, approved: bool) -> None:
    if approved:
        send_email(email, "Membership approved", f"Welcome to {club_name}!")
    else:
        send_email(email, "Membership request declined", f"Your request to join {club_name} was declined.")


def send_registration_confirmation(email: str, event_title: str) -> None:
    send_email(email, "Registration confirmed", f"You're in for '{event_title}'")
