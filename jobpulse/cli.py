"""
CLI entrypoint for JobPulse.

Each command builds one service from config.yaml, runs, and shuts it down.
The connect and serve commands also start the local callback server the
OAuth popup reports back to.
"""

import argparse
import logging
import os
import sys
import threading
from datetime import date
from typing import List, Optional

from werkzeug.serving import make_server

from jobpulse import create_app
from jobpulse.config import load_config
from jobpulse.connection import ConnectionState
from jobpulse.constants import APPLICATION_STATUSES, PROVIDERS
from jobpulse.errors import JobPulseError
from jobpulse.logging_config import get_logger, setup_logging
from jobpulse.scoring import calculate_status_counts, get_progress_color
from jobpulse.service import EmailSyncService, create_service
from jobpulse.startup import run_startup_validation
from jobpulse.tracker import SORT_KEYS, filter_applications, sort_applications

logger = get_logger(__name__)


class CallbackServer:
    """Runs the Flask callback app on a daemon thread."""

    def __init__(self, service: EmailSyncService, host: str, port: int):
        self.app = create_app(service)
        self._server = make_server(host, port, self.app, threaded=True)
        self._thread = threading.Thread(
            target=self._server.serve_forever, name="oauth-callback", daemon=True
        )
        self.url = f"http://{host}:{self._server.server_port}"

    def start(self):
        self._thread.start()
        logger.info(f"OAuth callback server listening on {self.url}")

    def serve_forever(self):
        """Serve on the calling thread until interrupted."""
        self._server.serve_forever()

    def stop(self):
        self._server.shutdown()


def _parse_date(value: str) -> date:
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"Invalid date '{value}' (expected YYYY-MM-DD)")


def print_accounts(service: EmailSyncService) -> None:
    accounts = service.accounts.accounts
    if not accounts:
        print("No email accounts connected.")
        return
    print(f"Connected accounts ({len(accounts)}):")
    for account in accounts:
        print(f"  [{account.id}] {account.provider:<8} {account.email_address}")


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


def login_command(service: EmailSyncService, args) -> int:
    try:
        service.credentials.sign_in(args.token)
    except ValueError as e:
        print(f"[ERROR] {e}")
        return 1
    print("[OK] Signed in")
    return 0


def logout_command(service: EmailSyncService, args) -> int:
    service.credentials.invalidate()
    service.accounts.invalidate()
    print("[OK] Signed out")
    return 0


def status_command(service: EmailSyncService, args) -> int:
    service.accounts.wait_for_refresh(timeout=service.config.api_timeout)
    status = service.status()

    print(f"Signed in: {'yes' if status['signed_in'] else 'no'}")
    if status["status_text"]:
        print(status["status_text"])
    if status["accounts_error"]:
        print(f"[ERROR] {status['accounts_error']}")
    print_accounts(service)
    if status["connected_at"]:
        print(f"Last connected: {status['connected_at']}")
    return 0


def connect_command(service: EmailSyncService, args) -> int:
    provider = args.provider or service.config.default_provider
    server = CallbackServer(service, service.config.callback_host, service.config.callback_port)
    server.start()

    try:
        session = service.orchestrator.connect(provider)
        if session.is_active:
            print(f"Complete the {provider.title()} sign-in in your browser window...")
            session = service.orchestrator.wait()
    except KeyboardInterrupt:
        service.orchestrator.popup_closed()
        session = service.orchestrator.poll()
    finally:
        server.stop()

    if session.message:
        prefix = "[ERROR]" if session.is_error else "[OK]"
        print(f"{prefix} {session.message}")

    if session.state == ConnectionState.CONNECTED:
        print_accounts(service)
        return 0
    return 1


def disconnect_command(service: EmailSyncService, args) -> int:
    ok = service.orchestrator.disconnect(args.account_id)
    print(f"[{'OK' if ok else 'ERROR'}] {service.orchestrator.notice}")
    if ok:
        print_accounts(service)
    return 0 if ok else 1


def fetch_command(service: EmailSyncService, args) -> int:
    service.accounts.wait_for_refresh(timeout=service.config.api_timeout)
    service.fetcher.provider = args.provider

    try:
        messages = service.fetcher.fetch(
            query=args.query,
            max_results=args.max_results,
            from_date=args.after,
            to_date=args.before,
            has_attachment=args.has_attachment,
            is_unread=args.unread,
        )
    except JobPulseError as e:
        print(f"[ERROR] {e}")
        return 1

    print(f"{len(service.fetcher.last_fetched)} email(s) fetched, {len(messages)} total")
    for message in messages:
        marker = " " if message.is_read else "*"
        print(f"{marker} {message.date:%Y-%m-%d}  {message.sender[:30]:<30}  {message.subject}")
    return 0


def track_command(service: EmailSyncService, args) -> int:
    service.accounts.wait_for_refresh(timeout=service.config.api_timeout)

    if service.accounts.active_account() is not None:
        try:
            service.fetcher.fetch(max_results=args.max_results)
        except JobPulseError as e:
            print(f"[WARN] Could not fetch emails: {e}")

    if args.set_status:
        application_id, status = args.set_status
        service.tracker.refresh()
        if not service.tracker.update_status(_coerce_id(application_id), status):
            print(f"[ERROR] {service.tracker.error}")
            return 1

    applications = service.tracker.refresh()
    if service.tracker.error:
        print(f"[ERROR] {service.tracker.error}")
        return 1

    counts = calculate_status_counts(applications)
    shown = sort_applications(
        filter_applications(applications, args.status, args.search or ""), args.sort
    )

    print(
        f"{counts['total']} application(s): "
        + ", ".join(f"{s} {counts[s]}" for s in APPLICATION_STATUSES if counts[s])
        + f" | advancing {counts['advancing']}"
    )
    for app in shown:
        color = get_progress_color(app.progress_score)
        print(
            f"  [{app.id}] {app.company} - {app.job_title}: {app.status} "
            f"({app.progress_score}%, {color}, {app.email_count} email(s))"
        )
        if app.next_action:
            print(f"      Next: {app.next_action}")
    return 0


def _coerce_id(value: str):
    return int(value) if value.isdigit() else value


def serve_command(service: EmailSyncService, args) -> int:
    server = CallbackServer(service, service.config.callback_host, service.config.callback_port)
    print(f"Serving OAuth callbacks on {server.url} (Ctrl+C to stop)")
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        pass
    return 0


COMMANDS = {
    "login": login_command,
    "logout": logout_command,
    "status": status_command,
    "connect": connect_command,
    "disconnect": disconnect_command,
    "fetch": fetch_command,
    "track": track_command,
    "serve": serve_command,
}


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="jobpulse",
        description="JobPulse - email-driven job application tracking",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python run.py login --token <bearer token>
  python run.py connect gmail
  python run.py fetch --query interview --after 2024-01-01 --unread
  python run.py track --status interview --sort company

Environment Variables:
  JOBPULSE_API_URL   Provider service root (overrides api.base_url)
  JOBPULSE_ENV       development (default), production, testing
  LOG_LEVEL          DEBUG, INFO, WARNING, ERROR (optional)
        """,
    )
    parser.add_argument("--config", help="Path to config.yaml (default: ./config.yaml)")
    parser.add_argument("--strict", action="store_true", help="Fail startup on warnings")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    login_parser = subparsers.add_parser("login", help="Store a bearer token")
    login_parser.add_argument("--token", required=True, help="Token issued by the auth service")

    subparsers.add_parser("logout", help="Forget the bearer token and account cache")
    subparsers.add_parser("status", help="Show sign-in state and connected accounts")

    connect_parser = subparsers.add_parser("connect", help="Connect an email account via OAuth")
    connect_parser.add_argument("provider", nargs="?", choices=PROVIDERS)

    disconnect_parser = subparsers.add_parser("disconnect", help="Disconnect an email account")
    disconnect_parser.add_argument("account_id", help="Account id (see: status)")

    fetch_parser = subparsers.add_parser("fetch", help="Fetch recent emails")
    fetch_parser.add_argument("--query", "-q", help="Provider search text")
    fetch_parser.add_argument("--max-results", "-n", type=int, help="Page size")
    fetch_parser.add_argument("--after", type=_parse_date, help="Only emails after YYYY-MM-DD")
    fetch_parser.add_argument("--before", type=_parse_date, help="Only emails before YYYY-MM-DD")
    fetch_parser.add_argument("--has-attachment", action="store_true")
    fetch_parser.add_argument("--unread", action="store_true")
    fetch_parser.add_argument("--provider", choices=PROVIDERS, help="Account to fetch from")

    track_parser = subparsers.add_parser("track", help="Show application progress")
    track_parser.add_argument("--status", default="all", choices=("all",) + APPLICATION_STATUSES)
    track_parser.add_argument("--search", "-s", help="Filter by company, title or job board")
    track_parser.add_argument("--sort", default="date", choices=SORT_KEYS)
    track_parser.add_argument("--max-results", "-n", type=int, help="Emails to correlate")
    track_parser.add_argument(
        "--set-status",
        nargs=2,
        metavar=("ID", "STATUS"),
        help="Change an application's status before listing",
    )

    subparsers.add_parser("serve", help="Run the OAuth callback server only")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entrypoint."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    env = os.environ.get("JOBPULSE_ENV", "development")
    setup_logging(level=os.environ.get("LOG_LEVEL"), json_logs=env == "production")

    try:
        config = load_config(args.config)
    except (FileNotFoundError, ValueError) as e:
        print(f"[ERROR] Failed to load configuration: {e}")
        return 1

    service = create_service(config)
    try:
        passed, _ = run_startup_validation(
            config,
            service.store,
            strict=args.strict,
            log_results=logger.isEnabledFor(logging.DEBUG),
        )
        if not passed:
            print("[ERROR] Startup validation failed (run with LOG_LEVEL=DEBUG for details)")
            return 1

        if args.command not in ("login", "logout"):
            service.start()
        return COMMANDS[args.command](service, args)
    finally:
        service.shutdown()


if __name__ == "__main__":
    sys.exit(main())
