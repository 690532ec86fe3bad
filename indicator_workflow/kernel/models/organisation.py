"""
Organisational topology used to resolve verifiers.

    Organisation --guides--> User (mentors)
    Organisation --> DeliveryLocation --assignments--> User (regional roles)
    Organisation / User --primary tenant--> Tenant --> TenantCluster
        --assignments--> User (ESO managers)
"""

import uuid
from typing import Optional

from sqlalchemy import ForeignKey, Index, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from indicator_workflow.kernel.models.base import Base, TimestampMixin, generate_uuid


class TenantCluster(Base, TimestampMixin):
    """A cluster of tenants owned by one ESO."""

    __tablename__ = "tenant_clusters"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(), primary_key=True, default=generate_uuid)
    name: Mapped[str] = mapped_column(String(255), nullable=False)


class Tenant(Base, TimestampMixin):
    __tablename__ = "tenants"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(), primary_key=True, default=generate_uuid)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    cluster_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(),
        ForeignKey("tenant_clusters.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )


class DeliveryLocation(Base, TimestampMixin):
    """A session delivery location (region)."""

    __tablename__ = "delivery_locations"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(), primary_key=True, default=generate_uuid)
    name: Mapped[str] = mapped_column(String(255), nullable=False)


class Organisation(Base, TimestampMixin):
    __tablename__ = "organisations"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(), primary_key=True, default=generate_uuid)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    delivery_location_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(),
        ForeignKey("delivery_locations.id", ondelete="SET NULL"),
        nullable=True,
    )
    primary_tenant_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(),
        ForeignKey("tenants.id", ondelete="SET NULL"),
        nullable=True,
    )

    def __repr__(self) -> str:
        return f"<Organisation {self.name}>"


class OrganisationGuide(Base, TimestampMixin):
    """A guide (mentor) attached to an organisation."""

    __tablename__ = "organisation_guides"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(), primary_key=True, default=generate_uuid)
    organisation_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        ForeignKey("organisations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )


class DeliveryLocationUserRole(Base, TimestampMixin):
    """Role assignment scoped to a delivery location."""

    __tablename__ = "delivery_location_user_roles"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(), primary_key=True, default=generate_uuid)
    delivery_location_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        ForeignKey("delivery_locations.id", ondelete="CASCADE"),
        nullable=False,
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    role_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        ForeignKey("roles.id", ondelete="CASCADE"),
        nullable=False,
    )

    __table_args__ = (
        Index("ix_delivery_location_user_roles_location_role", "delivery_location_id", "role_id"),
    )


class TenantClusterUserRole(Base, TimestampMixin):
    """Role assignment scoped to a tenant cluster."""

    __tablename__ = "tenant_cluster_user_roles"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(), primary_key=True, default=generate_uuid)
    tenant_cluster_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        ForeignKey("tenant_clusters.id", ondelete="CASCADE"),
        nullable=False,
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    role_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        ForeignKey("roles.id", ondelete="CASCADE"),
        nullable=False,
    )

    __table_args__ = (
        Index("ix_tenant_cluster_user_roles_cluster_role", "tenant_cluster_id", "role_id"),
    )
