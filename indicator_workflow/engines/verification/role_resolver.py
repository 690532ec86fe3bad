"""
Role Resolver - finds the user who must verify a submission at one level.

Resolution dispatches on the verifier role's slug through a registry of
strategies, one per designation:

    mentor                  organisation's guides holding the guide permission
    programme-manager       latest assignment on the task's programme
    programme-coordinator   latest assignment on the task's programme
    regional-coordinator    latest assignment on the organisation's delivery location
    regional-manager        latest assignment on the organisation's delivery location
    eso-manager             organisation's (else entrepreneur's) primary tenant
                            -> cluster -> latest assignment

A strategy returning None means "no unique verifier"; the review task is
then created unassigned. A slug with no registered strategy, or one not
listed in `Settings.verifier_roles`, is a configuration error.

The organisational context is passed in explicitly; nothing is read from
ambient tenant state.
"""

import uuid
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, Iterable, Optional

from sqlalchemy import desc, select
from sqlalchemy.ext.asyncio import AsyncSession

from indicator_workflow.config import get_settings
from indicator_workflow.exceptions import (
    MissingIndicatorAssociationError,
    RoleNotFoundForVerificationLevelError,
    UnmappedVerifierRoleError,
)
from indicator_workflow.kernel.models.organisation import (
    DeliveryLocationUserRole,
    Organisation,
    OrganisationGuide,
    Tenant,
    TenantClusterUserRole,
)
from indicator_workflow.kernel.models.programme import Programme, ProgrammeUserRole
from indicator_workflow.kernel.models.task import IndicatorTask
from indicator_workflow.kernel.models.user import GUIDE_PERMISSION, Role, User
from indicator_workflow.logging_config import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class VerificationContext:
    """Whose work is being verified, and where."""

    entrepreneur: User
    organisation: Organisation
    programme: Programme
    task_id: Optional[uuid.UUID] = None


Strategy = Callable[[AsyncSession, VerificationContext, Role], Awaitable[Optional[User]]]

VERIFIER_STRATEGIES: Dict[str, Strategy] = {}


def verifier_strategy(*designations: str) -> Callable[[Strategy], Strategy]:
    """Register a resolution strategy for one or more role slugs."""

    def decorator(fn: Strategy) -> Strategy:
        for designation in designations:
            VERIFIER_STRATEGIES[designation] = fn
        return fn

    return decorator


@verifier_strategy("mentor")
async def resolve_mentor(
    session: AsyncSession,
    context: VerificationContext,
    role: Role,
) -> Optional[User]:
    result = await session.execute(
        select(User)
        .join(OrganisationGuide, OrganisationGuide.user_id == User.id)
        .where(OrganisationGuide.organisation_id == context.organisation.id)
    )
    mentors = [user for user in result.scalars().unique() if user.has_permission(GUIDE_PERMISSION)]

    if len(mentors) != 1:
        # Ambiguous or absent; an administrator assigns the review task
        logger.debug(
            "No unique mentor for organisation",
            extra={
                "organisation_id": str(context.organisation.id),
                "mentor_count": len(mentors),
            },
        )
        return None
    return mentors[0]


@verifier_strategy("programme-manager", "programme-coordinator")
async def resolve_programme_role(
    session: AsyncSession,
    context: VerificationContext,
    role: Role,
) -> Optional[User]:
    result = await session.execute(
        select(User)
        .join(ProgrammeUserRole, ProgrammeUserRole.user_id == User.id)
        .where(
            ProgrammeUserRole.programme_id == context.programme.id,
            ProgrammeUserRole.role_id == role.id,
        )
        .order_by(desc(ProgrammeUserRole.created_at))
        .limit(1)
    )
    user = result.scalars().first()
    if user is None:
        logger.debug(
            "No user holds programme role",
            extra={"programme_id": str(context.programme.id), "role": role.slug},
        )
    return user


@verifier_strategy("regional-coordinator", "regional-manager")
async def resolve_regional_role(
    session: AsyncSession,
    context: VerificationContext,
    role: Role,
) -> Optional[User]:
    delivery_location_id = context.organisation.delivery_location_id
    if delivery_location_id is None:
        logger.debug(
            "Organisation has no delivery location",
            extra={"organisation_id": str(context.organisation.id), "role": role.slug},
        )
        return None

    result = await session.execute(
        select(User)
        .join(DeliveryLocationUserRole, DeliveryLocationUserRole.user_id == User.id)
        .where(
            DeliveryLocationUserRole.delivery_location_id == delivery_location_id,
            DeliveryLocationUserRole.role_id == role.id,
        )
        .order_by(desc(DeliveryLocationUserRole.created_at))
        .limit(1)
    )
    user = result.scalars().first()
    if user is None:
        logger.debug(
            "No user holds regional role for delivery location",
            extra={"delivery_location_id": str(delivery_location_id), "role": role.slug},
        )
    return user


@verifier_strategy("eso-manager")
async def resolve_eso_manager(
    session: AsyncSession,
    context: VerificationContext,
    role: Role,
) -> Optional[User]:
    tenant_id = context.organisation.primary_tenant_id or context.entrepreneur.primary_tenant_id
    if tenant_id is None:
        logger.debug(
            "No primary tenant for organisation or entrepreneur",
            extra={
                "organisation_id": str(context.organisation.id),
                "entrepreneur_id": str(context.entrepreneur.id),
            },
        )
        return None

    tenant = await session.get(Tenant, tenant_id)
    if tenant is None or tenant.cluster_id is None:
        logger.debug("Primary tenant has no cluster", extra={"tenant_id": str(tenant_id)})
        return None

    result = await session.execute(
        select(User)
        .join(TenantClusterUserRole, TenantClusterUserRole.user_id == User.id)
        .where(
            TenantClusterUserRole.tenant_cluster_id == tenant.cluster_id,
            TenantClusterUserRole.role_id == role.id,
        )
        .order_by(desc(TenantClusterUserRole.created_at))
        .limit(1)
    )
    user = result.scalars().first()
    if user is None:
        logger.debug(
            "No ESO manager for tenant cluster",
            extra={"tenant_cluster_id": str(tenant.cluster_id)},
        )
    return user


class RoleResolver:
    """
    Usage:
        resolver = RoleResolver(session)
        verifier = await resolver.resolve_verifier_for_task(task, indicator.verifier_1_role_id)
    """

    def __init__(
        self,
        session: AsyncSession,
        strategies: Optional[Dict[str, Strategy]] = None,
        verifier_roles: Optional[Iterable[str]] = None,
    ):
        self.session = session
        self.strategies = strategies if strategies is not None else VERIFIER_STRATEGIES
        # Designations enabled for verification; a registered strategy alone is not enough
        self.verifier_roles = frozenset(
            verifier_roles if verifier_roles is not None else get_settings().verifier_roles
        )

    async def load_context(self, task: IndicatorTask) -> VerificationContext:
        """Load the entrepreneur, organisation and programme a task belongs to."""
        entrepreneur = await self._require(User, task.entrepreneur_id, task, "entrepreneur")
        organisation = await self._require(Organisation, task.organisation_id, task, "organisation")
        programme = await self._require(Programme, task.programme_id, task, "programme")
        return VerificationContext(
            entrepreneur=entrepreneur,
            organisation=organisation,
            programme=programme,
            task_id=task.id,
        )

    async def resolve_verifier(
        self,
        context: VerificationContext,
        role_id: uuid.UUID,
    ) -> Optional[User]:
        role = await self.session.get(Role, role_id)
        if role is None:
            raise RoleNotFoundForVerificationLevelError(
                f"Verifier role {role_id} does not exist",
                role_id=role_id,
            )

        strategy = self.strategies.get(role.slug)
        if strategy is None or role.slug not in self.verifier_roles:
            raise UnmappedVerifierRoleError(role.slug, role_id=role.id)

        verifier = await strategy(self.session, context, role)
        logger.debug(
            "Verifier resolved" if verifier else "No verifier resolved",
            extra={
                "role": role.slug,
                "task_id": str(context.task_id) if context.task_id else None,
                "verifier_id": str(verifier.id) if verifier else None,
            },
        )
        return verifier

    async def resolve_verifier_for_task(
        self,
        task: IndicatorTask,
        role_id: uuid.UUID,
    ) -> Optional[User]:
        context = await self.load_context(task)
        return await self.resolve_verifier(context, role_id)

    async def _require(self, model, entity_id, task: IndicatorTask, association: str):
        entity = await self.session.get(model, entity_id) if entity_id is not None else None
        if entity is None:
            raise MissingIndicatorAssociationError(task.id, association)
        return entity
