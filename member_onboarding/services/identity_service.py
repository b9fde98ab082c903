"""Identity provider service - creates sign-in accounts for activated members."""

from __future__ import annotations

import logging
import re
import secrets
import string
from dataclasses import dataclass
from typing import Optional, Protocol

import requests

from member_onboarding.core import get_settings
from member_onboarding.core.settings import AppSettings, IdentityProviderSettings
from member_onboarding.exceptions import IdentityProvisioningError

logger = logging.getLogger(__name__)

PASSWORD_LENGTH = 16
PASSWORD_SYMBOLS = "!@#$%^&*"


@dataclass(frozen=True)
class IdentityAccount:
    """Account created by the identity provider."""

    external_id: str
    temporary_password: str


class IdentityProvider(Protocol):
    """Protocol for identity providers used on membership activation."""

    def create_user(
        self, email: str, first_name: str, last_name: str
    ) -> IdentityAccount: ...


def generate_temporary_password(length: int = PASSWORD_LENGTH) -> str:
    """Generate a password with at least one upper, lower, digit and symbol."""
    alphabet = string.ascii_letters + string.digits + PASSWORD_SYMBOLS
    required = [
        secrets.choice(string.ascii_uppercase),
        secrets.choice(string.ascii_lowercase),
        secrets.choice(string.digits),
        secrets.choice(PASSWORD_SYMBOLS),
    ]
    rest = [secrets.choice(alphabet) for _ in range(length - len(required))]
    chars = required + rest
    secrets.SystemRandom().shuffle(chars)
    return "".join(chars)


def _mail_nickname(email: str) -> str:
    return re.sub(r"[^a-zA-Z0-9]", "", email.split("@")[0]) or "member"


class EntraIdentityProvider:
    """Microsoft Entra ID provider backed by the Graph REST API."""

    def __init__(
        self,
        settings: IdentityProviderSettings,
        session: Optional[requests.Session] = None,
    ) -> None:
        """Initialize the provider.

        Args:
            settings: Entra tenant and application credentials
            session: HTTP session (a new one is created when omitted)
        """
        self.settings = settings
        self.session = session or requests.Session()

    def create_user(
        self, email: str, first_name: str, last_name: str
    ) -> IdentityAccount:
        """Create a local account that signs in with the member's email.

        Args:
            email: Primary user email
            first_name: Primary user first name
            last_name: Primary user last name

        Returns:
            Created account with its temporary password

        Raises:
            IdentityProvisioningError: If the token or user request fails
        """
        token = self._acquire_token()
        temporary_password = generate_temporary_password()
        nickname = _mail_nickname(email)
        domain = self.settings.user_domain or f"{self.settings.tenant_id}.onmicrosoft.com"

        payload = {
            "accountEnabled": True,
            "displayName": f"{first_name} {last_name}".strip(),
            "givenName": first_name,
            "surname": last_name,
            "mailNickname": nickname,
            "userPrincipalName": f"{nickname}_{secrets.token_hex(4)}@{domain}",
            "mail": email,
            "passwordProfile": {
                "forceChangePasswordNextSignIn": True,
                "password": temporary_password,
            },
            "identities": [
                {
                    "signInType": "emailAddress",
                    "issuer": domain,
                    "issuerAssignedId": email,
                }
            ],
        }

        try:
            response = self.session.post(
                f"{self.settings.graph_url.rstrip('/')}/users",
                json=payload,
                headers={"Authorization": f"Bearer {token}"},
                timeout=self.settings.timeout_seconds,
            )
            response.raise_for_status()
            external_id = response.json()["id"]
        except (requests.RequestException, KeyError, ValueError) as exc:
            raise IdentityProvisioningError(
                f"Failed to create identity account for {email}: {exc}"
            ) from exc

        logger.info(f"Created Entra user {external_id} for {email}")
        return IdentityAccount(
            external_id=external_id, temporary_password=temporary_password
        )

    def _acquire_token(self) -> str:
        """Get an app-only Graph token with the client credentials grant."""
        url = (
            f"{self.settings.authority_host.rstrip('/')}/"
            f"{self.settings.tenant_id}/oauth2/v2.0/token"
        )
        try:
            response = self.session.post(
                url,
                data={
                    "grant_type": "client_credentials",
                    "client_id": self.settings.client_id,
                    "client_secret": self.settings.client_secret,
                    "scope": "https://graph.microsoft.com/.default",
                },
                timeout=self.settings.timeout_seconds,
            )
            response.raise_for_status()
            return response.json()["access_token"]
        except (requests.RequestException, KeyError, ValueError) as exc:
            raise IdentityProvisioningError(
                f"Failed to acquire identity provider token: {exc}"
            ) from exc


class LoggingIdentityProvider:
    """Development provider: logs the request and returns a local account id."""

    def create_user(
        self, email: str, first_name: str, last_name: str
    ) -> IdentityAccount:
        external_id = f"local-{secrets.token_hex(8)}"
        logger.info(
            f"Identity provider not configured - simulated account {external_id} "
            f"for {first_name} {last_name} <{email}>"
        )
        return IdentityAccount(
            external_id=external_id, temporary_password=generate_temporary_password()
        )


def build_identity_provider(settings: Optional[AppSettings] = None) -> IdentityProvider:
    """Pick the Entra provider when configured, otherwise the logging one."""
    settings = settings or get_settings()
    if settings.identity.enabled:
        return EntraIdentityProvider(settings.identity)
    logger.warning("Entra ID is not configured; member accounts will not be created")
    return LoggingIdentityProvider()
