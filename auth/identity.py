"""
Identity resolution and the email-domain allowlist.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Iterable

from errors import DomainNotAllowed, IdentityUnresolved

from .github_oauth import GitHubOAuthClient

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EmailRecord:
    address: str
    is_primary: bool
    is_verified: bool

    @staticmethod
    def from_github(raw: Any) -> "EmailRecord | None":
        """Build a record from one item of GitHub's `/user/emails` list."""
        if not isinstance(raw, dict):
            return None
        address = raw.get("email")
        if not isinstance(address, str) or not address.strip():
            return None
        return EmailRecord(
            address=address.strip(),
            is_primary=raw.get("primary") is True,
            is_verified=raw.get("verified") is True,
        )


def select_primary_email(records: Iterable[EmailRecord]) -> str | None:
    """Return the first address that is both primary and verified."""

    for record in records:
        if record.is_primary and record.is_verified:
            return record.address
    return None


def email_domain(email: str) -> str:
    return email.rpartition("@")[2].lower()


def is_allowed_email(email: str, allowed_domain: str) -> bool:
    """
    True iff `email` is `<local>@<allowed_domain>`.

    The character before the domain must be the `@` itself, so
    `user@evilexample.com` does not pass for `example.com`.
    """

    local, at, domain = email.rpartition("@")
    if not at or not local:
        return False
    return domain.lower() == allowed_domain.lower()


def verify_identity(client: GitHubOAuthClient, access_token: str, allowed_domain: str) -> str:
    """
    Resolve the user's email with `access_token` and enforce the allowlist.

    Raises `IdentityUnresolved` when no primary verified email exists and
    `DomainNotAllowed` when it is outside `allowed_domain`.
    """

    records = [r for r in map(EmailRecord.from_github, client.fetch_emails(access_token)) if r]
    email = select_primary_email(records)
    if not email:
        logger.info("No primary verified email among %d addresses", len(records))
        raise IdentityUnresolved()

    if not is_allowed_email(email, allowed_domain):
        rejected = email_domain(email)
        logger.info("Rejected sign-in from domain %s", rejected)
        raise DomainNotAllowed(rejected, allowed_domain)

    return email
