#!/usr/bin/env python3
"""
PrintDesk - subscription access tools.

Usage:
    python -m printdesk.main login <token>   Store a token and validate the subscription
    python -m printdesk.main logout          Forget the token and cached subscription
    python -m printdesk.main status          Validate the subscription for a route
    python -m printdesk.main refresh         Force a fresh subscription check
    python -m printdesk.main redeem <code>   Apply an invitation code
    python -m printdesk.main dismiss         Hide the trial reminder for 24 hours
    python -m printdesk.main reopen          Show the trial reminder again
    python -m printdesk.main snapshot        Show the last known subscription
    python -m printdesk.main serve           Start the local API server
"""
from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from dotenv import load_dotenv

from printdesk.config import (
    delete_auth_token,
    get_config,
    get_token_claims,
    is_authenticated,
    save_auth_token,
)
from printdesk.errors import ApiError
from printdesk.subscription.gate import RouteNavigator, SubscriptionGate
from printdesk.subscription.invitation import redeem_invitation_code
from printdesk.subscription.manager import (
    create_gate,
    get_api_client,
    get_notification_broadcast,
    get_subscription_snapshot,
    invalidate_subscription,
)
from printdesk.subscription.reminder import build_reminder


def _print_gate(gate: SubscriptionGate) -> None:
    record = gate.record

    print("Subscription Status")
    print("-" * 40)
    print(f"State: {gate.state.value}")

    if record is None:
        print("Subscription: none on file")
    else:
        kind = "trial" if record.is_trial else "paid"
        print(f"Subscription: {kind} ({'active' if record.is_active else 'inactive'})")
        print(f"  Ends: {record.end_date.isoformat()}")
        print(f"  Days remaining: {record.days_remaining()}")

    if gate.redirect_to:
        print(f"\nAccess denied, redirect to: {gate.redirect_to}")
        return

    reminder = build_reminder(record, get_notification_broadcast().is_closed)
    if reminder.show_banner:
        print(f"\n[{reminder.title}] {reminder.days_text}")
    elif reminder.show_compact_alert:
        print(f"\n{reminder.alert_text}")


def _require_login() -> None:
    if not is_authenticated():
        print("Not logged in. Set PRINTDESK_AUTH_TOKEN or save a token first.")
        sys.exit(1)


def cmd_login(args: argparse.Namespace) -> None:
    """Store the token, then validate from the backend ignoring cached state."""
    save_auth_token(args.token)
    _require_login()

    gate = create_gate(RouteNavigator(args.route))
    valid = asyncio.run(gate.validate_after_login())
    _print_gate(gate)

    if not valid:
        sys.exit(2)


def cmd_logout(args: argparse.Namespace) -> None:
    delete_auth_token()
    invalidate_subscription()
    print("Logged out.")


def cmd_status(args: argparse.Namespace) -> None:
    """Validate the subscription, using the cache when fresh."""
    _require_login()

    tenant = get_token_claims().get("tenantId")
    if tenant:
        print(f"Tenant: {tenant}")

    gate = create_gate(RouteNavigator(args.route))
    asyncio.run(gate.validate())
    _print_gate(gate)

    if not gate.is_subscription_valid:
        sys.exit(2)


def cmd_refresh(args: argparse.Namespace) -> None:
    """Force a fresh subscription check."""
    _require_login()

    gate = create_gate(RouteNavigator(args.route))
    asyncio.run(gate.refresh_subscription())
    _print_gate(gate)

    if not gate.is_subscription_valid:
        sys.exit(2)


def cmd_redeem(args: argparse.Namespace) -> None:
    """Apply an invitation code and revalidate."""
    _require_login()

    gate = create_gate(RouteNavigator(args.route))
    try:
        asyncio.run(redeem_invitation_code(
            args.code,
            get_api_client(),
            gate,
            snapshot=get_subscription_snapshot(),
        ))
    except ApiError as e:
        print(f"Error: {e.message}")
        sys.exit(1)

    print("Invitation code applied.")
    _print_gate(gate)


def cmd_dismiss(args: argparse.Namespace) -> None:
    get_notification_broadcast().close()
    print("Trial reminder hidden for 24 hours.")


def cmd_reopen(args: argparse.Namespace) -> None:
    get_notification_broadcast().show()
    print("Trial reminder visible again.")


def cmd_snapshot(args: argparse.Namespace) -> None:
    """Show the last subscription seen, without contacting the backend."""
    record = get_subscription_snapshot().load()
    if record is None:
        print("No subscription snapshot stored.")
        return
    print(f"Last known subscription ends {record.end_date.isoformat()} "
          f"({record.days_remaining()} days remaining)")


def cmd_serve(args: argparse.Namespace) -> None:
    import uvicorn

    from printdesk.api.server import app

    uvicorn.run(app, host=args.host, port=args.port)


def main() -> None:
    load_dotenv()
    logging.basicConfig(
        level=get_config().log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    parser = argparse.ArgumentParser(
        description="PrintDesk - subscription access tools",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    login_parser = subparsers.add_parser("login", help="Store a token and validate")
    login_parser.add_argument("token", help="Bearer token issued by the backend")
    login_parser.add_argument("--route", default="/dashboard")
    login_parser.set_defaults(func=cmd_login)

    logout_parser = subparsers.add_parser("logout", help="Forget the token")
    logout_parser.set_defaults(func=cmd_logout)

    status_parser = subparsers.add_parser("status", help="Validate the subscription")
    status_parser.add_argument("--route", default="/dashboard",
                               help="Route being entered (default: /dashboard)")
    status_parser.set_defaults(func=cmd_status)

    refresh_parser = subparsers.add_parser("refresh", help="Force a fresh subscription check")
    refresh_parser.add_argument("--route", default="/dashboard")
    refresh_parser.set_defaults(func=cmd_refresh)

    redeem_parser = subparsers.add_parser("redeem", help="Apply an invitation code")
    redeem_parser.add_argument("code", help="Invitation code (XXXXX-XXXXX-XXXXX-XXXXX-XXXXX)")
    redeem_parser.add_argument("--route", default="/dashboard")
    redeem_parser.set_defaults(func=cmd_redeem)

    dismiss_parser = subparsers.add_parser("dismiss", help="Hide the trial reminder")
    dismiss_parser.set_defaults(func=cmd_dismiss)

    reopen_parser = subparsers.add_parser("reopen", help="Show the trial reminder again")
    reopen_parser.set_defaults(func=cmd_reopen)

    snapshot_parser = subparsers.add_parser("snapshot", help="Show the last known subscription")
    snapshot_parser.set_defaults(func=cmd_snapshot)

    serve_parser = subparsers.add_parser("serve", help="Start the local API server")
    serve_parser.add_argument("--host", default="127.0.0.1")
    serve_parser.add_argument("--port", type=int, default=8000)
    serve_parser.set_defaults(func=cmd_serve)

    args = parser.parse_args()

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    args.func(args)


if __name__ == "__main__":
    main()
