from __future__ import annotations

import logging
from typing import Any

import pytest

from sms_forwarder.pipeline import ForwardOutcome, build_notification, forward_message
from sms_forwarder.sms import ForwardingPolicy, InboundSms

ALLOWED = "+14165551234"


def _policy(**kwargs: object) -> ForwardingPolicy:
    defaults: dict[str, object] = {
        "enabled": True,
        "allowed_sender": ALLOWED,
        "destination_email": "a@b.com",
    }
    defaults.update(kwargs)
    return ForwardingPolicy(**defaults)  # type: ignore[arg-type]


def test_build_notification_names_sender_and_carries_text() -> None:
    notification = build_notification("a@b.com", ALLOWED, "hello")

    assert notification.to == "a@b.com"
    assert notification.subject == f"SMS from {ALLOWED}"
    assert notification.body == f"From: {ALLOWED}\n\nhello"


@pytest.mark.parametrize("text", [None, ""])
def test_build_notification_uses_placeholder_without_body(text: str | None) -> None:
    assert build_notification("a@b.com", ALLOWED, text).body.endswith("(no body)")


@pytest.mark.asyncio
@pytest.mark.parametrize("sender", [ALLOWED, "+19055550000", ""])
async def test_disabled_policy_never_dispatches(sender: str, fake_dispatcher: Any) -> None:
    result = await forward_message(
        _policy(enabled=False), InboundSms(phone=sender, text="hi"), fake_dispatcher
    )

    assert result.outcome is ForwardOutcome.DISABLED
    assert fake_dispatcher.sent == []


@pytest.mark.asyncio
async def test_other_sender_is_dropped(fake_dispatcher: Any) -> None:
    result = await forward_message(
        _policy(), InboundSms(phone="+19055550000", text="hi"), fake_dispatcher
    )

    assert result.outcome is ForwardOutcome.SENDER_MISMATCH
    assert fake_dispatcher.sent == []


@pytest.mark.asyncio
@pytest.mark.parametrize("sender", [ALLOWED, "", "+"])
async def test_empty_allow_list_accepts_nobody(sender: str, fake_dispatcher: Any) -> None:
    result = await forward_message(
        _policy(allowed_sender=""), InboundSms(phone=sender, text="hi"), fake_dispatcher
    )

    assert result.outcome is ForwardOutcome.SENDER_MISMATCH
    assert fake_dispatcher.sent == []


@pytest.mark.asyncio
async def test_allowed_sender_is_forwarded_once(fake_dispatcher: Any) -> None:
    result = await forward_message(
        _policy(), InboundSms(phone=ALLOWED, text="hello"), fake_dispatcher
    )

    assert result.outcome is ForwardOutcome.DISPATCHED
    assert len(fake_dispatcher.sent) == 1
    sent = fake_dispatcher.sent[0]
    assert sent.to == "a@b.com"
    assert ALLOWED in sent.subject
    assert "hello" in sent.body


@pytest.mark.asyncio
async def test_sender_formatting_does_not_cause_false_negative(fake_dispatcher: Any) -> None:
    result = await forward_message(
        _policy(allowed_sender="+1 (416) 555-1234"),
        InboundSms(phone="1 416 555 1234", text="hello"),
        fake_dispatcher,
    )

    assert result.outcome is ForwardOutcome.DISPATCHED
    assert result.sender == ALLOWED


@pytest.mark.asyncio
async def test_dispatch_failure_is_logged_not_raised(
    caplog: pytest.LogCaptureFixture, failing_dispatcher: Any
) -> None:
    with caplog.at_level(logging.ERROR, logger="sms_forwarder.pipeline"):
        result = await forward_message(
            _policy(), InboundSms(phone=ALLOWED, text="hello"), failing_dispatcher
        )

    assert result.outcome is ForwardOutcome.DISPATCH_FAILED
    assert result.error == "SendGrid responded 401: unauthorized"
    assert len(failing_dispatcher.sent) == 1
    assert "SendGrid responded 401" in caplog.text
