"""SQLAlchemy mixins for common model patterns (DRY).

Provides: CuidMixin, OrgMixin, CreatedAtMixin, VersionedMixin and the
combined OrgScopedModel, plus values_check for enum-backed CHECK
constraints.
"""

from collections.abc import Iterable
from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, Integer, String
from sqlalchemy.orm import Mapped, declared_attr, mapped_column
from sqlalchemy.sql import func

from taskpool.shared.utils import generate_cuid, utc_now


def values_check(column: str, values: Iterable[str], name: str) -> CheckConstraint:
    """Return CHECK (column IN (...)) for a fixed set of string values."""
    quoted = ", ".join("'{}'".format(v.replace("'", "''")) for v in values)
    return CheckConstraint(f"{column} IN ({quoted})", name=name)


class CuidMixin:
    """Mixin for models using CUID as primary key. Provides id with default generate_cuid."""

    @declared_attr
    def id(cls) -> Mapped[str]:
        return mapped_column(String, primary_key=True, default=generate_cuid)


class OrgMixin:
    """Mixin for organization-owned rows.

    Organizations are administered outside this core, so org_id is an
    opaque indexed string rather than a foreign key.
    """

    @declared_attr
    def org_id(cls) -> Mapped[str]:
        return mapped_column(String, nullable=False, index=True)


class CreatedAtMixin:
    """Mixin for created_at (timezone-aware; Python default plus server default)."""

    @declared_attr
    def created_at(cls) -> Mapped[datetime]:
        return mapped_column(
            DateTime(timezone=True),
            default=utc_now,
            server_default=func.now(),
            nullable=False,
        )


class VersionedMixin:
    """Mixin for optimistic locking: version integer, default 1."""

    @declared_attr
    def version(cls) -> Mapped[int]:
        return mapped_column(
            Integer, default=1, server_default="1", nullable=False
        )


class OrgScopedModel(CuidMixin, OrgMixin, CreatedAtMixin):
    """Combined mixin: CUID + org_id + created_at. Common for taskpool models."""

    __abstract__ = True
