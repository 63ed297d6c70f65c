"""
tests/conftest.py -- Shared test fixtures for CampaignHub integration tests.

This module provides:
  - RecordingMailer: captures outgoing emails (and their raw tokens) in memory
  - make_stack(): isolated in-memory stores, cache, and temp-dir file storage
  - _patch_lifespan(): wires a stack into app.state, bypassing real startup
  - api: module-scoped ApiContext (TestClient + stack + admin bearer headers)
  - stack: function-scoped stack for service-level tests

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs route handlers in a thread pool. Plain :memory: DBs
are per-connection and would present a blank schema to each worker thread.
The named URI format (file:name?mode=memory&cache=shared&uri=true) shares
one in-memory instance across all connections in the same process.

DEBUG and RATE_LIMIT_ENABLED must be set before any app module import:
get_settings() is cached on first use, the token helpers read it at import
time, and the limiter is built from it when api.limiter is imported.
"""

from __future__ import annotations

import asyncio
import itertools
import os
from collections.abc import Generator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from pathlib import Path

# CRITICAL: Set these before any app import so get_settings() auto-generates
# SECRET_KEY in dev mode and the shared limiter starts disabled.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")

import pytest
from fastapi.testclient import TestClient

from api.main import app, attach_services
from auth.accounts import AccountService
from auth.admins import AdminService
from auth.mailer import Mailer
from auth.models import AccountStatus, Admin, User
from auth.store import AdminStore, UserStore
from auth.tokens import create_session_token, hash_password
from cache.store import LookupCache
from core.config import get_settings
from core.errors import DependencyFailureError
from sitesettings.service import SettingsService
from sitesettings.store import SettingsStore
from storage.files import LocalFileStorage
from taxonomy.service import TaxonomyService
from taxonomy.store import TaxonomyStore

ADMIN_EMAIL = "root@campaignhub.test"
ADMIN_PASSWORD = "rootpass123"

_db_counter = itertools.count()


# ---------------------------------------------------------------------------
# Mailer double
# ---------------------------------------------------------------------------


@dataclass
class SentEmail:
    kind: str
    to: str
    token: str
    audience: str = "user"


class RecordingMailer(Mailer):
    """Mailer that records messages instead of calling the email API.

    Set fail=True to make every send raise DependencyFailureError, the same
    way a real transport error surfaces.
    """

    def __init__(self) -> None:
        super().__init__(
            api_url="http://mail.invalid/send",
            api_key="test-key",
            sender="CampaignHub <no-reply@campaignhub.test>",
            frontend_url="http://app.test",
            admin_frontend_url="http://admin.test",
        )
        self.sent: list[SentEmail] = []
        self.fail = False

    def send_activation_email(self, email: str, raw_token: str, name: str) -> None:
        if self.fail:
            raise DependencyFailureError(detail="activation")
        self.sent.append(SentEmail(kind="activation", to=email, token=raw_token))

    def send_password_reset_email(self, email: str, raw_token: str, name: str, audience: str = "user") -> None:
        if self.fail:
            raise DependencyFailureError(detail="password_reset")
        self.sent.append(SentEmail(kind="password_reset", to=email, token=raw_token, audience=audience))

    def last_token(self, kind: str, to: str) -> str:
        for message in reversed(self.sent):
            if message.kind == kind and message.to == to:
                return message.token
        raise AssertionError(f"No {kind} email sent to {to}")


# ---------------------------------------------------------------------------
# Store helpers
# ---------------------------------------------------------------------------


@dataclass
class ServiceStack:
    user_store: UserStore
    admin_store: AdminStore
    taxonomy_store: TaxonomyStore
    settings_store: SettingsStore
    cache: LookupCache
    storage: LocalFileStorage
    mailer: RecordingMailer = field(default_factory=RecordingMailer)

    def close(self) -> None:
        self.cache.close()
        self.mailer.close()
        for store in (self.user_store, self.admin_store, self.taxonomy_store, self.settings_store):
            store.close()


def make_stack(db_suffix: str, upload_root: Path) -> ServiceStack:
    """Create isolated named shared-memory SQLite stores for one test scope.

    Args:
        db_suffix:   Unique string appended to the DB name so test modules
                     don't share state.
        upload_root: Directory the file storage writes into.
    """
    db_url = f"sqlite:///file:test_{db_suffix}_{next(_db_counter)}?mode=memory&cache=shared&uri=true"
    return ServiceStack(
        user_store=UserStore(db_url),
        admin_store=AdminStore(db_url),
        taxonomy_store=TaxonomyStore(db_url),
        settings_store=SettingsStore(db_url),
        cache=LookupCache(":memory:", ttl=300),
        storage=LocalFileStorage(upload_root),
    )


def seed_admin(stack: ServiceStack, email: str = ADMIN_EMAIL, password: str = ADMIN_PASSWORD) -> Admin:
    return stack.admin_store.insert(
        Admin(
            first_name="Root",
            last_name="Admin",
            email=email,
            hashed_password=hash_password(password),
        )
    )


def seed_user(
    stack: ServiceStack,
    email: str,
    password: str = "memberpass1",
    status: AccountStatus = AccountStatus.ACTIVE,
    first_name: str = "Member",
    last_name: str = "Person",
) -> User:
    slug_tail = next(_db_counter)
    return stack.user_store.insert(
        User(
            first_name=first_name,
            last_name=last_name,
            email=email,
            hashed_password=hash_password(password),
            slug=f"{first_name}-{last_name}-{slug_tail}".lower(),
            status=status,
        )
    )


def bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def admin_headers(admin: Admin) -> dict[str, str]:
    token = create_session_token(admin.id, {"email": admin.email, "type": "admin"}, expire_seconds=3600)
    return bearer(token)


def user_headers(user: User) -> dict[str, str]:
    token = create_session_token(user.id, {"email": user.email, "type": "user"}, expire_seconds=3600)
    return bearer(token)


def _patch_lifespan(stack: ServiceStack):
    """Return an async context manager that replaces the real lifespan.

    Wires the pre-created test stack into app.state through the same
    attach_services() the real lifespan uses, so routes see isolated stores.

    The purge_task is a long-sleeping coroutine that keeps asyncio happy
    (a real asyncio.Task is required; MagicMock would fail on .cancel()).
    """

    @asynccontextmanager
    async def test_lifespan(app):
        attach_services(
            app,
            get_settings(),
            user_store=stack.user_store,
            admin_store=stack.admin_store,
            taxonomy_store=stack.taxonomy_store,
            settings_store=stack.settings_store,
            cache=stack.cache,
            storage=stack.storage,
            mailer=stack.mailer,
        )
        app.state.purge_task = asyncio.create_task(asyncio.sleep(99999))
        yield
        app.state.purge_task.cancel()

    return test_lifespan


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@dataclass
class ApiContext:
    client: TestClient
    stack: ServiceStack
    admin: Admin
    admin_headers: dict[str, str]


@pytest.fixture(scope="module")
def api(request, tmp_path_factory) -> Generator[ApiContext, None, None]:
    """Yield an ApiContext for API integration tests.

    The TestClient uses the real FastAPI app with a patched lifespan so tests
    hit real route handlers and middleware but use isolated in-memory stores.
    A bootstrap admin exists before the client starts.
    """
    suffix = request.module.__name__.rsplit(".", 1)[-1]
    stack = make_stack(suffix, tmp_path_factory.mktemp(f"uploads_{suffix}"))
    admin = seed_admin(stack)

    app.router.lifespan_context = _patch_lifespan(stack)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield ApiContext(client=client, stack=stack, admin=admin, admin_headers=admin_headers(admin))

    stack.close()


@pytest.fixture
def stack(request, tmp_path) -> Generator[ServiceStack, None, None]:
    """Fresh stores per test for service-level tests."""
    test_stack = make_stack("svc", tmp_path / "uploads")
    yield test_stack
    test_stack.close()


@pytest.fixture
def accounts(stack):
    return AccountService(stack.user_store, stack.mailer, session_expire_seconds=3600)


@pytest.fixture
def admin_service(stack):
    return AdminService(stack.admin_store, stack.mailer, stack.storage, session_expire_seconds=3600, max_upload_bytes=1024)


@pytest.fixture
def taxonomy(stack):
    return TaxonomyService(stack.taxonomy_store, stack.cache, default_language="en")


@pytest.fixture
def site_settings(stack):
    return SettingsService(stack.settings_store, stack.cache, stack.storage, max_upload_bytes=1024)
