"""
auth/mailer.py -- Transactional email delivery over an HTTP email API.

Plain-text messages are POSTed as JSON to EMAIL_API_URL with a bearer key
(Resend-compatible payload). Delivery errors surface as DependencyFailureError;
callers decide whether the failure is fatal (password reset) or only logged
(activation after registration).

With no EMAIL_API_KEY configured delivery is disabled: sends are logged and
skipped. Raw tokens are embedded in links but never written to the log.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import logging
from urllib.parse import quote, urlencode

import requests

from core.config import Settings
from core.errors import DependencyFailureError


class Mailer:
    """Sends account emails through a shared requests.Session.

    Usage:
        mailer = Mailer.from_settings(get_settings())
        mailer.send_activation_email("ada@example.com", raw_token, "Ada Lovelace")
    """

    def __init__(
        self,
        api_url: str,
        api_key: str,
        sender: str,
        frontend_url: str,
        admin_frontend_url: str,
        timeout: float = 10.0,
        reset_ttl_minutes: int = 10,
        session: requests.Session | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.api_url = api_url
        self.api_key = api_key
        self.sender = sender
        self.frontend_url = frontend_url.rstrip("/")
        self.admin_frontend_url = admin_frontend_url.rstrip("/")
        self.timeout = timeout
        self.reset_ttl_minutes = reset_ttl_minutes
        self._session = session or requests.Session()
        self._log = logger or logging.getLogger("campaignhub.mail")

    @classmethod
    def from_settings(cls, settings: Settings) -> Mailer:
        return cls(
            api_url=settings.email_api_url,
            api_key=settings.email_api_key,
            sender=settings.email_from,
            frontend_url=settings.frontend_url,
            admin_frontend_url=settings.admin_frontend_url,
            timeout=settings.email_timeout_seconds,
            reset_ttl_minutes=settings.token_ttl_minutes,
        )

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------

    def send_activation_email(self, email: str, raw_token: str, name: str) -> None:
        link = f"{self.frontend_url}/auth/activate?{urlencode({'token': raw_token}, quote_via=quote)}"
        self._send(
            to=email,
            subject="Activate your CampaignHub account",
            text=(
                f"Hi {name},\n\n"
                f"Thanks for signing up. Activate your account here:\n\n{link}\n\n"
                "If you did not create an account, you can ignore this email."
            ),
            kind="activation",
        )

    def send_password_reset_email(self, email: str, raw_token: str, name: str, audience: str = "user") -> None:
        """Send a reset link. audience="admin" points the link at the admin console."""
        base = self.admin_frontend_url if audience == "admin" else self.frontend_url
        link = f"{base}/auth/reset-password?{urlencode({'token': raw_token}, quote_via=quote)}"
        unit = "minute" if self.reset_ttl_minutes == 1 else "minutes"
        self._send(
            to=email,
            subject="Reset your CampaignHub password",
            text=(
                f"Hi {name},\n\n"
                f"Use this link to choose a new password:\n\n{link}\n\n"
                f"The link expires in {self.reset_ttl_minutes} {unit}. "
                "If you did not request a reset, you can ignore this email."
            ),
            kind="password_reset",
        )

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def _send(self, to: str, subject: str, text: str, kind: str) -> None:
        if not self.enabled:
            self._log.info("Email delivery disabled; skipping %s email to %s", kind, to)
            return
        try:
            resp = self._session.post(
                self.api_url,
                headers={"Authorization": f"Bearer {self.api_key}"},
                json={"from": self.sender, "to": to, "subject": subject, "text": text},
                timeout=self.timeout,
            )
            resp.raise_for_status()
        except requests.RequestException as e:
            self._log.warning("Failed to send %s email to %s: %s", kind, to, e)
            raise DependencyFailureError(detail=kind) from e
        self._log.info("Sent %s email to %s", kind, to)

    def close(self) -> None:
        self._session.close()
