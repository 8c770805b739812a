"""
Email normalisation and fraud checks for signup lookups and the contact form.
"""
import re
from typing import Optional, Tuple

from email_validator import EmailNotValidError, validate_email as check_email_syntax

DISPOSABLE_EMAIL_DOMAINS = {
    "10minutemail.com", "tempmail.org", "guerrillamail.com", "mailinator.com",
    "yopmail.com", "temp-mail.org", "throwaway.email", "sharklasers.com",
    "getnada.com", "maildrop.cc", "temp-mail.io", "mohmal.com",
    "fakeinbox.com", "spamgourmet.com", "dispostable.com", "tempr.email",
    "20minutemail.it", "emailondeck.com", "mytrashmail.com", "anonymbox.com",
}

GMAIL_DOMAINS = {"gmail.com", "googlemail.com"}
PLUS_TAG_DOMAINS = {"outlook.com", "hotmail.com", "live.com", "yahoo.com", "icloud.com"}

LONG_DIGIT_RUN = re.compile(r"\d{5,}")
SEPARATOR_RUN = re.compile(r"[._%+-]{3,}")

INVALID_ADDRESS = "Please enter a valid email address"
SUSPICIOUS_ADDRESS = "Email address appears to be invalid"


def normalize_email(email: str) -> str:
    """
    Canonical form used to spot duplicate accounts.

    gmail: dots and +tags dropped; outlook/hotmail/live/yahoo/icloud: +tags dropped.
    """
    if not email:
        return ""
    email = email.strip().lower()
    local, _, domain = email.partition("@")
    if not local or not domain:
        return email

    if domain in GMAIL_DOMAINS:
        local = local.replace(".", "").split("+")[0]
    elif domain in PLUS_TAG_DOMAINS:
        local = local.split("+")[0]
    return f"{local}@{domain}"


def validate_email(email: str) -> Tuple[bool, Optional[str]]:
    """Returns (is_valid, error_message)."""
    if not email:
        return False, "Email is required"

    try:
        check_email_syntax(email, check_deliverability=False)
    except EmailNotValidError:
        return False, INVALID_ADDRESS

    local, _, domain = email.lower().rpartition("@")
    if domain in DISPOSABLE_EMAIL_DOMAINS:
        return False, "Temporary email addresses are not allowed. Please use a permanent email address."

    if len(local) < 2:
        return False, SUSPICIOUS_ADDRESS
    if LONG_DIGIT_RUN.search(local) or SEPARATOR_RUN.search(local):
        return False, SUSPICIOUS_ADDRESS

    return True, None
