"""
Module: fund_kernel.selectors.hierarchy_selector
Responsibility: Read access to the collaborator-owned user tree: user lookup,
    subordinate sets, site membership, and construction of the ``Actor``
    value object every engine operation receives.
Architecture position: Kernel > Selectors.

The subordinate set is computed by an explicit breadth-first walk over
``users.parent_id`` and returned as a materialized frozenset.  A visited set
guards against cycles in malformed data.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select

from fund_kernel.domain.authority import Actor, Role
from fund_kernel.exceptions import SiteNotFoundError, UserNotFoundError, WorkerNotFoundError
from fund_kernel.models.organization import Site, User
from fund_kernel.selectors.base import BaseSelector


@dataclass(frozen=True)
class UserInfo:
    id: UUID
    organization_id: UUID
    name: str
    email: str
    role: Role
    parent_id: UUID | None
    is_active: bool
    daily_rate: Decimal | None

    @property
    def is_worker(self) -> bool:
        return self.role == Role.WORKER


class HierarchySelector(BaseSelector[User]):
    """Queries over users, their reporting tree, and sites."""

    def _to_dto(self, user: User) -> UserInfo:
        return UserInfo(
            id=user.id,
            organization_id=user.organization_id,
            name=user.name,
            email=user.email,
            role=Role(user.role),
            parent_id=user.parent_id,
            is_active=user.is_active,
            daily_rate=user.daily_rate,
        )

    def get_user(self, user_id: UUID) -> UserInfo:
        """
        Raises:
            UserNotFoundError: If the user does not exist.
        """
        user = self.session.get(User, user_id)
        if user is None:
            raise UserNotFoundError(str(user_id))
        return self._to_dto(user)

    def find_user_in_org(self, user_id: UUID, organization_id: UUID) -> UserInfo | None:
        stmt = select(User).where(
            User.id == user_id,
            User.organization_id == organization_id,
        )
        user = self.session.execute(stmt).scalar_one_or_none()
        return self._to_dto(user) if user else None

    def get_worker(self, worker_id: UUID, organization_id: UUID) -> UserInfo:
        """
        Get a user of the organization to act on as a worker.

        Raises:
            WorkerNotFoundError: If no such user exists in the organization.
        """
        info = self.find_user_in_org(worker_id, organization_id)
        if info is None:
            raise WorkerNotFoundError(str(worker_id))
        return info

    def subordinate_ids(self, user_id: UUID, organization_id: UUID) -> frozenset[UUID]:
        """All users transitively below ``user_id`` in the parent tree."""
        found: set[UUID] = set()
        frontier = [user_id]
        while frontier:
            stmt = select(User.id).where(
                User.organization_id == organization_id,
                User.parent_id.in_(frontier),
            )
            children = [
                child for child in self.session.execute(stmt).scalars()
                if child not in found and child != user_id
            ]
            found.update(children)
            frontier = children
        return frozenset(found)

    def actor(self, user_id: UUID) -> Actor:
        """
        Build the Actor for a caller.  Developers see the whole organization,
        so their subordinate set is not materialized.

        Raises:
            UserNotFoundError: If the user does not exist.
        """
        user = self.get_user(user_id)
        subordinates: frozenset[UUID] = frozenset()
        if user.role != Role.DEVELOPER:
            subordinates = self.subordinate_ids(user.id, user.organization_id)
        return Actor(
            user_id=user.id,
            organization_id=user.organization_id,
            role=user.role,
            subordinate_ids=subordinates,
        )

    def site_exists(self, site_id: UUID, organization_id: UUID) -> bool:
        stmt = select(Site.id).where(
            Site.id == site_id,
            Site.organization_id == organization_id,
        )
        return self.session.execute(stmt).scalar_one_or_none() is not None

    def require_site(self, site_id: UUID | None, organization_id: UUID) -> None:
        """No-op for ``None``; otherwise raise unless the site is in the organization."""
        if site_id is not None and not self.site_exists(site_id, organization_id):
            raise SiteNotFoundError(str(site_id))
