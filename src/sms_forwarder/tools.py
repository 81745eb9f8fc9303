from __future__ import annotations

import argparse
import json
import sys

from .phone import normalize_e164
from .sms import ForwardingPolicy
from .store import ConfigStore, get_config_store


def format_policy(policy: ForwardingPolicy) -> str:
    """Human-readable one-record summary."""
    return "\n".join(
        [
            f"enabled:     {'yes' if policy.enabled else 'no'}",
            f"sender:      {policy.allowed_sender or '(none, all messages dropped)'}",
            f"destination: {policy.destination_email or '(none)'}",
        ]
    )


def apply_changes(
    current: ForwardingPolicy,
    enabled: bool | None = None,
    sender: str | None = None,
    email: str | None = None,
) -> ForwardingPolicy:
    """
    Build the replacement record: given fields override, the rest are
    carried over from the current record.
    """
    return ForwardingPolicy(
        enabled=current.enabled if enabled is None else enabled,
        allowed_sender=current.allowed_sender if sender is None else normalize_e164(sender),
        destination_email=current.destination_email if email is None else email.strip(),
    )


def _has_changes(args: argparse.Namespace) -> bool:
    return args.enabled is not None or args.sender is not None or args.email is not None


def run(args: argparse.Namespace, store: ConfigStore) -> int:
    current = store.read()

    if args.show or not _has_changes(args):
        if args.json:
            print(json.dumps(current.to_wire(), indent=2))
        else:
            print(format_policy(current))
        return 0

    updated = apply_changes(current, enabled=args.enabled, sender=args.sender, email=args.email)
    if not updated.destination_email:
        print("error: destination email is required (use --email)", file=sys.stderr)
        return 2

    store.write(updated)
    print(format_policy(updated))
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        description="Show or replace the SMS forwarding config stored by sms-forwarder."
    )
    toggle = parser.add_mutually_exclusive_group()
    toggle.add_argument(
        "--enable",
        dest="enabled",
        action="store_const",
        const=True,
        help="Turn forwarding on.",
    )
    toggle.add_argument(
        "--disable",
        dest="enabled",
        action="store_const",
        const=False,
        help="Turn forwarding off.",
    )
    parser.add_argument(
        "--sender",
        type=str,
        default=None,
        help="Allowed sender number (any format, stored as E.164). Pass '' to clear.",
    )
    parser.add_argument(
        "--email",
        type=str,
        default=None,
        help="Destination email address.",
    )
    parser.add_argument(
        "--show",
        action="store_true",
        help="Print the stored record (the default when nothing is changed).",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print the stored record as JSON instead of a summary.",
    )
    args = parser.parse_args(argv)
    if args.show and _has_changes(args):
        parser.error("--show cannot be combined with --enable/--disable/--sender/--email")
    return run(args, get_config_store())


if __name__ == "__main__":
    sys.exit(main())
