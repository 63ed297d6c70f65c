#!/usr/bin/env python3
"""
CampaignHub -- management commands.

Usage:
  python main.py create-admin --email ops@example.com --first-name Ada --last-name Lovelace
  python main.py seed-languages
  python main.py purge-cache
  python main.py purge-cache --all
  python main.py --db-url sqlite:////srv/campaignhub.db create-admin --email ...

The API itself is served with:  uvicorn asgi:app

Environment variables:
  DATABASE_URL  SQLAlchemy URL of the application database (overridden by --db-url)
  SECRET_KEY    Required unless DEBUG=true
"""

import argparse
import getpass
import sys
from typing import Optional

from auth.admins import AdminService
from auth.mailer import Mailer
from auth.store import AdminStore
from auth.tokens import BCRYPT_MAX_BYTES, password_fits_bcrypt
from cache.store import LookupCache
from core.config import get_settings
from core.errors import AppError
from core.messages import translate
from storage.files import LocalFileStorage
from taxonomy.service import TaxonomyService
from taxonomy.store import TaxonomyStore

# (code, name); the first entry becomes the default language on an empty database.
_SEED_LANGUAGES = [
    ("en", "English"),
    ("es", "Español"),
    ("fr", "Français"),
    ("de", "Deutsch"),
]


def _fail(exc: AppError) -> None:
    print(f"  [!] {translate(exc.message_key, ['en'], **exc.params)}")
    sys.exit(1)


def _prompt_password() -> Optional[tuple[str, str]]:
    password = getpass.getpass("  Password: ")
    confirm = getpass.getpass("  Confirm password: ")
    if len(password) < 8:
        print("  [!] Password must be at least 8 characters.")
        return None
    if not password_fits_bcrypt(password):
        print(f"  [!] Password must be at most {BCRYPT_MAX_BYTES} bytes when UTF-8 encoded.")
        return None
    return password, confirm


def create_admin(args: argparse.Namespace, db_url: str) -> None:
    """Bootstrap an admin account. The API only lets admins create admins."""
    settings = get_settings()
    store = AdminStore(db_url)
    mailer = Mailer.from_settings(settings)
    service = AdminService(
        store,
        mailer,
        LocalFileStorage(settings.upload_dir),
        session_expire_seconds=settings.admin_session_expire_seconds,
        max_upload_bytes=settings.max_upload_bytes,
        allowed_image_types=settings.allowed_image_types,
    )
    try:
        passwords = _prompt_password()
        if passwords is None:
            sys.exit(1)
        admin = service.create(
            first_name=args.first_name,
            last_name=args.last_name,
            email=args.email,
            password=passwords[0],
            password_confirm=passwords[1],
        )
    except AppError as e:
        _fail(e)
    finally:
        mailer.close()
        store.close()
    print(f"  Created admin {admin.email} ({admin.public_id}).")


def seed_languages(db_url: str) -> None:
    """Insert the stock languages that are not present yet. Safe to re-run."""
    settings = get_settings()
    store = TaxonomyStore(db_url)
    cache = LookupCache(settings.cache_db_path, ttl=settings.cache_ttl_seconds)
    service = TaxonomyService(store, cache, default_language=settings.default_language)
    try:
        for code, name in _SEED_LANGUAGES:
            if store.find_language(code) is not None:
                print(f"  {code} already present")
                continue
            language = service.create_language(code, name, is_default=code == settings.default_language)
            print(f"  {language.code} created{' (default)' if language.is_default else ''}")
    except AppError as e:
        _fail(e)
    finally:
        cache.close()
        store.close()


def purge_cache(clear_all: bool) -> None:
    settings = get_settings()
    cache = LookupCache(settings.cache_db_path, ttl=settings.cache_ttl_seconds)
    try:
        removed = cache.clear() if clear_all else cache.purge_expired()
    finally:
        cache.close()
    print(f"  Removed {removed} cache entr{'y' if removed == 1 else 'ies'}.")


def main() -> None:
    parser = argparse.ArgumentParser(
        prog="campaignhub",
        description="CampaignHub management commands.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py create-admin --email ops@example.com --first-name Ada --last-name Lovelace
  python main.py seed-languages
  python main.py purge-cache --all
        """,
    )
    parser.add_argument(
        "--db-url",
        metavar="URL",
        default=None,
        help="SQLAlchemy database URL (default: DATABASE_URL setting)",
    )
    commands = parser.add_subparsers(dest="command", metavar="COMMAND")

    admin_cmd = commands.add_parser("create-admin", help="Create an admin account (password is prompted)")
    admin_cmd.add_argument("--email", required=True, help="Login email of the new admin")
    admin_cmd.add_argument("--first-name", required=True, help="First name")
    admin_cmd.add_argument("--last-name", required=True, help="Last name")

    commands.add_parser("seed-languages", help="Create English (default), Spanish, French and German")

    purge_cmd = commands.add_parser("purge-cache", help="Remove expired lookup cache entries")
    purge_cmd.add_argument("--all", action="store_true", help="Remove every entry, not only expired ones")

    args = parser.parse_args()
    db_url = args.db_url or get_settings().database_url

    if args.command == "create-admin":
        create_admin(args, db_url)
    elif args.command == "seed-languages":
        seed_languages(db_url)
    elif args.command == "purge-cache":
        purge_cache(args.all)
    else:
        parser.print_help()


if __name__ == "__main__":
    main()
