# cli/cli.py
"""
CLI registry and dispatcher for SecurePent maintenance commands.
"""
from __future__ import annotations

import argparse
import asyncio
import os
import secrets
import sys
from typing import Callable, Dict, Optional

from sqlalchemy import func, select

from backend.core.config import Settings, get_settings
from backend.core.logging import configure_structlog
from backend.db.session import Database
from backend.models import (
    AdminUser,
    AnalyticsEvent,
    AnalyticsSession,
    AuditLogEntry,
    Contact,
    CookiePreference,
)
from backend.services.audit import AuditLogger
from backend.services.auth import AuthService
from backend.services.security import PasswordHasher, TokenService

TABLES = {
    "contacts": Contact,
    "analytics_sessions": AnalyticsSession,
    "analytics_events": AnalyticsEvent,
    "admin_users": AdminUser,
    "audit_log": AuditLogEntry,
    "cookie_preferences": CookiePreference,
}


# Output formatting utilities
def _supports_color() -> bool:
    """Check if terminal supports ANSI color codes."""
    if sys.platform == "win32":
        return os.getenv("TERM") == "xterm" or os.getenv("ANSICON") is not None
    return sys.stdout.isatty()


SUPPORTS_COLOR = _supports_color()

GREEN = '\033[92m' if SUPPORTS_COLOR else ''
RED = '\033[91m' if SUPPORTS_COLOR else ''
YELLOW = '\033[93m' if SUPPORTS_COLOR else ''
BLUE = '\033[94m' if SUPPORTS_COLOR else ''
RESET = '\033[0m' if SUPPORTS_COLOR else ''


def print_success(message: str):
    print(f"{GREEN}[✓]{RESET} {message}")


def print_error(message: str):
    print(f"{RED}[✗]{RESET} {message}")


def print_warning(message: str):
    print(f"{YELLOW}[!]{RESET} {message}")


def print_info(message: str):
    print(f"{BLUE}[i]{RESET} {message}")


def _auth_service(settings: Settings, database: Database) -> AuthService:
    hasher = PasswordHasher(rounds=settings.bcrypt_rounds)
    return AuthService(settings, hasher, TokenService(settings), AuditLogger(database))


async def table_counts(database: Database) -> Dict[str, int]:
    counts = {}
    async with database.session() as session:
        for name, model in TABLES.items():
            result = await session.execute(select(func.count()).select_from(model))
            counts[name] = int(result.scalar() or 0)
    return counts


# Command functions
async def cmd_init_db(args: argparse.Namespace, settings: Settings) -> int:
    """Command: Create tables and the bootstrap admin."""
    database = Database(settings)
    try:
        print_info(f"Initializing database ({database.engine.dialect.name})...")
        await database.create_all()
        print_success("Schema ready")

        if settings.admin_password:
            async with database.session() as session:
                user = await _auth_service(settings, database).ensure_admin(
                    session,
                    username=settings.admin_username,
                    password=settings.admin_password,
                    email=settings.admin_email,
                )
            print_success(f"Admin user '{user.username}' present")
        else:
            print_warning("ADMIN_PASSWORD not set; no admin user created")

        for name, count in (await table_counts(database)).items():
            print_info(f"  {name}: {count}")
        return 0
    finally:
        await database.dispose()


async def cmd_reset_admin(args: argparse.Namespace, settings: Settings) -> int:
    """Command: Reset an admin password and clear its lockout."""
    password = args.password or settings.admin_password
    generated = password is None
    if generated:
        password = secrets.token_urlsafe(12)
    if len(password) < 8:
        print_error("Password must be at least 8 characters")
        return 1

    database = Database(settings)
    try:
        await database.create_all()
        async with database.session() as session:
            user = await _auth_service(settings, database).ensure_admin(
                session,
                username=args.username or settings.admin_username,
                password=password,
                email=settings.admin_email,
                reset=True,
            )
        print_success(f"Password reset for '{user.username}' (role: {user.role})")
        if generated:
            print_warning(f"Generated password: {password}")
            print_warning("Log in and change this password immediately")
        return 0
    finally:
        await database.dispose()


async def cmd_stats(args: argparse.Namespace, settings: Settings) -> int:
    """Command: Print row counts for every table."""
    database = Database(settings)
    try:
        ping = await database.ping()
        if ping.get("status") != "connected":
            print_error(f"Database unavailable: {ping.get('error', 'unknown error')}")
            return 1
        print_success(f"Database connected ({ping['dialect']}, {ping['response_time_ms']} ms)")
        for name, count in (await table_counts(database)).items():
            print_info(f"  {name}: {count}")
        return 0
    finally:
        await database.dispose()


# Command registry
COMMANDS: Dict[str, Callable] = {
    'init-db': cmd_init_db,
    'reset-admin': cmd_reset_admin,
    'stats': cmd_stats,
}


def create_parser() -> argparse.ArgumentParser:
    """Create argument parser with all commands."""
    parser = argparse.ArgumentParser(
        prog='securepent',
        description='SecurePent API maintenance commands',
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    subparsers = parser.add_subparsers(dest='command', help='Command to execute')

    subparsers.add_parser('init-db', help='Create tables and the bootstrap admin user')

    reset_parser = subparsers.add_parser('reset-admin', help='Reset an admin password and clear lockout')
    reset_parser.add_argument('--username', default=None, help='Admin username (default: ADMIN_USERNAME)')
    reset_parser.add_argument('--password', default=None, help='New password (default: ADMIN_PASSWORD or generated)')

    subparsers.add_parser('stats', help='Show row counts for every table')

    return parser


def main(args: Optional[list] = None) -> int:
    """Main CLI entry point."""
    parser = create_parser()
    parsed_args = parser.parse_args(args)

    if not parsed_args.command:
        parser.print_help()
        return 1

    command_func = COMMANDS.get(parsed_args.command)
    if not command_func:
        print_error(f"Unknown command: {parsed_args.command}")
        parser.print_help()
        return 1

    try:
        settings = get_settings()
        configure_structlog(settings)
        return asyncio.run(command_func(parsed_args, settings))
    except KeyboardInterrupt:
        print_error("\nInterrupted by user")
        return 130
    except Exception as e:
        print_error(f"Error executing command: {str(e)}")
        if os.getenv('DEBUG'):
            import traceback
            traceback.print_exc()
        return 1


if __name__ == '__main__':
    sys.exit(main())
