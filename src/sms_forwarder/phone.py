from __future__ import annotations

import re

NON_DIAL_RE = re.compile(r"[^\d+]")


def normalize_e164(raw: str | None) -> str:
    """
    Canonicalise a phone number to "+<digits>" so differently formatted
    numbers compare equal.

    "+1 416-555-1234", "(1) 416 555 1234" and "14165551234" all become
    "+14165551234". Empty or None input yields "", which never matches a sender.
    """
    if not raw:
        return ""

    cleaned = NON_DIAL_RE.sub("", raw)
    # A "+" is only meaningful as the leading character
    digits = cleaned.lstrip("+").replace("+", "")
    if not digits:
        return ""
    return f"+{digits}"
