"""
receiptit.identity
~~~~~~~~~~~~~~~~~~
Session value and email-alias helpers.

Every user receives a forwarding alias such as ``jane-doe@receiptit.app``.
Alias usernames are restricted to lowercase letters, digits and hyphens.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional

from .config import cfg
from .exceptions import InvalidAliasError

_ALIAS_STRIP_RE = re.compile(r"[^a-z0-9-]")


@dataclass(frozen=True)
class Session:
    """An authenticated user as reported by the identity collaborator."""

    user_id:      str
    email:        str
    access_token: Optional[str] = None
    email_alias:  Optional[str] = None
    username:     Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "user_id":     self.user_id,
            "email":       self.email,
            "email_alias": self.email_alias,
            "username":    self.username,
        }


def sanitize_alias(value: str) -> str:
    """Lower-case ``value`` and drop everything outside ``[a-z0-9-]``."""
    return _ALIAS_STRIP_RE.sub("", value.lower())


def alias_from_email(email: str) -> str:
    """Suggest an alias username from the local part of an email address."""
    local = email.split("@", 1)[0] or "user"
    return sanitize_alias(local)


def build_alias(username: str, domain: str | None = None) -> str:
    """
    Full alias address for ``username``.

    Raises ``InvalidAliasError`` when nothing remains after sanitising.
    """
    clean = sanitize_alias(username)
    if not clean:
        raise InvalidAliasError("Please enter a valid alias.")
    return f"{clean}@{domain or cfg.alias_domain}"


__all__ = ["Session", "alias_from_email", "build_alias", "sanitize_alias"]
