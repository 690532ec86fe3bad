"""
User and role models.

Roles are global designations ("mentor", "programme-manager", ...); who holds
a role *where* is recorded by the per-context assignment tables in
organisation.py and programme.py.
"""

import uuid
from typing import Optional

from sqlalchemy import ForeignKey, JSON, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from indicator_workflow.kernel.models.base import Base, TimestampMixin, generate_uuid, slugify

GUIDE_PERMISSION = "guide"


class Role(Base, TimestampMixin):
    """A role designation; the slug drives verifier resolution."""

    __tablename__ = "roles"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        primary_key=True,
        default=generate_uuid,
    )
    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    slug: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        index=True,
        nullable=False,
    )

    def __init__(self, **kwargs):
        if "slug" not in kwargs and kwargs.get("name"):
            kwargs["slug"] = slugify(kwargs["name"])
        super().__init__(**kwargs)

    def __repr__(self) -> str:
        return f"<Role {self.slug}>"


class User(Base, TimestampMixin):
    """User account model."""

    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        primary_key=True,
        default=generate_uuid,
    )
    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        index=True,
        nullable=False,
    )
    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    # Permission slugs granted to the user (e.g. "guide")
    permissions: Mapped[list] = mapped_column(
        JSON,
        default=list,
        nullable=False,
    )
    primary_tenant_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(),
        ForeignKey("tenants.id", ondelete="SET NULL"),
        nullable=True,
    )

    def has_permission(self, permission: str) -> bool:
        return permission in (self.permissions or [])

    def __repr__(self) -> str:
        return f"<User {self.email}>"
