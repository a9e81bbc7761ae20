"""
Payment gateway stand-in.

Every charge is accepted and gets an opaque reference. A real gateway
integration replaces `charge` and `void` without touching the booking flow.
"""
import logging
import secrets

logger = logging.getLogger(__name__)


def charge(amount: int, currency: str, description: str = "") -> str:
    if amount <= 0:
        raise ValueError("Charge amount must be positive")
    reference = "pay_" + secrets.token_hex(12)
    logger.info("Charged %s %s (%s) ref=%s", amount, currency, description, reference)
    return reference


def void(reference: str) -> None:
    logger.info("Voided payment %s", reference)
