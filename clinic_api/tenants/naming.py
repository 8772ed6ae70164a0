"""
Deterministic names derived from an organization's display name.

The canonical slug is ``lowercase(name)`` with every character outside
``[a-z0-9]`` replaced by ``_``. Database, role and secret names are all built
from it, so the same display name always maps to the same resources.
"""
import re
from dataclasses import dataclass

_NON_ALNUM = re.compile(r"[^a-z0-9]")

# First path segments already taken by top-level routes
RESERVED_SLUGS = frozenset({"auth", "organizations", "health"})

# PostgreSQL truncates identifiers at 63 bytes; "clinic_" + slug must fit
MAX_NAME_LENGTH = 56
MIN_NAME_LENGTH = 4


def canonical_slug(name: str) -> str:
    return _NON_ALNUM.sub("_", name.lower())


def database_name(slug: str) -> str:
    return f"clinic_{slug}"


def role_name(slug: str) -> str:
    return f"{slug}_user"


def secret_name(slug: str) -> str:
    return f"clinic-db-{slug}"


@dataclass(frozen=True)
class TenantNames:
    """All identifiers of one tenant."""
    display_name: str
    slug: str
    db_name: str
    role_name: str
    secret_name: str

    @classmethod
    def from_display_name(cls, display_name: str) -> "TenantNames":
        slug = canonical_slug(display_name)
        return cls(
            display_name=display_name,
            slug=slug,
            db_name=database_name(slug),
            role_name=role_name(slug),
            secret_name=secret_name(slug),
        )
