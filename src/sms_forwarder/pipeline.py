from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Final

from .email_dispatch import DispatchError, EmailDispatcher
from .phone import normalize_e164
from .sms import EmailNotification, ForwardingPolicy, InboundSms

logger = logging.getLogger(__name__)

NO_BODY_PLACEHOLDER: Final[str] = "(no body)"


class ForwardOutcome(str, Enum):
    DISABLED = "disabled"
    SENDER_MISMATCH = "sender_mismatch"
    DISPATCHED = "dispatched"
    DISPATCH_FAILED = "dispatch_failed"


@dataclass
class ForwardResult:
    outcome: ForwardOutcome
    sender: str
    error: str | None = None


def build_notification(destination: str, sender: str, text: str | None) -> EmailNotification:
    """
    Email for one forwarded SMS.

    Subject names the sender; body repeats the sender and carries the text,
    or a placeholder when Twilio sent no Body.
    """
    return EmailNotification(
        to=destination,
        subject=f"SMS from {sender}",
        body=f"From: {sender}\n\n{text or NO_BODY_PLACEHOLDER}",
    )


async def forward_message(
    policy: ForwardingPolicy,
    inbound: InboundSms,
    dispatcher: EmailDispatcher,
) -> ForwardResult:
    """
    Core forwarding decision for one inbound SMS:
    - disabled policy -> nothing happens
    - sender not the allow-listed number (or none configured) -> dropped
    - otherwise one email via the dispatcher

    Never raises for a dispatch failure: it is logged and reported in the
    result so the webhook can still acknowledge Twilio.
    """
    sender = normalize_e164(inbound.phone)

    # 1. Master switch
    if not policy.enabled:
        logger.info("Forwarding disabled; ignoring SMS from %s", sender or "<unknown>")
        return ForwardResult(outcome=ForwardOutcome.DISABLED, sender=sender)

    # 2. Allow-list (empty allow-list accepts nobody)
    allowed = normalize_e164(policy.allowed_sender)
    if not allowed or sender != allowed:
        logger.info("Dropping SMS from non-allowed sender %s", sender or "<unknown>")
        return ForwardResult(outcome=ForwardOutcome.SENDER_MISMATCH, sender=sender)

    # 3. Dispatch
    notification = build_notification(policy.destination_email, sender, inbound.text)
    try:
        await dispatcher.send(notification)
    except DispatchError as e:
        logger.error("Failed to forward SMS from %s via %s: %s", sender, dispatcher.name, e)
        return ForwardResult(outcome=ForwardOutcome.DISPATCH_FAILED, sender=sender, error=str(e))

    logger.info("Forwarded SMS from %s to %s via %s", sender, policy.destination_email, dispatcher.name)
    return ForwardResult(outcome=ForwardOutcome.DISPATCHED, sender=sender)
