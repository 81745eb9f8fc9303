from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, StrictBool, field_validator

from .phone import normalize_e164


class ForwardingPolicy(BaseModel):
    """
    The single, process-wide forwarding record.

    Stored and served with the wire names used by the mobile app
    (enabled / allowedSenderE164 / destinationEmail).
    """

    model_config = ConfigDict(populate_by_name=True)

    enabled: bool
    allowed_sender: str = Field(default="", alias="allowedSenderE164")
    destination_email: str = Field(default="", alias="destinationEmail")

    @classmethod
    def default(cls) -> ForwardingPolicy:
        """Record created the first time configuration is read."""
        return cls(enabled=True, allowed_sender="", destination_email="")

    @classmethod
    def fail_safe(cls) -> ForwardingPolicy:
        """Record returned when storage cannot be read: forwarding off."""
        return cls(enabled=False, allowed_sender="", destination_email="")

    def to_wire(self) -> dict[str, object]:
        return self.model_dump(by_alias=True)


class PolicyUpdate(BaseModel):
    """Body of POST /config. Replaces the stored policy wholesale."""

    enabled: StrictBool
    allowedSenderE164: str | None = None
    destinationEmail: str

    @field_validator("destinationEmail")
    @classmethod
    def destination_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("destinationEmail must not be empty")
        return value

    def to_policy(self) -> ForwardingPolicy:
        return ForwardingPolicy(
            enabled=self.enabled,
            allowed_sender=normalize_e164(self.allowedSenderE164),
            destination_email=self.destinationEmail,
        )


class InboundSms(BaseModel):
    # Twilio form fields; Body may be missing for MMS-only messages
    phone: str = ""
    text: str | None = None

    @classmethod
    def from_twilio_form(cls, form: dict[str, str]) -> InboundSms:
        return cls(phone=form.get("From", ""), text=form.get("Body"))


class EmailNotification(BaseModel):
    to: str
    subject: str
    body: str
