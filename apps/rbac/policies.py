"""
Authorization policies.

Pure predicates over already-loaded data: callers pass the acting user's
id, role ids and role names explicitly, and nothing here touches the
database. RBACService loads that data fresh for every decision.
"""
from dataclasses import dataclass
from typing import AbstractSet, FrozenSet, Iterable, List

from apps.core.exceptions import ValidationFailed
from apps.rbac import constants


def merge_permissions(direct: Iterable[str], role_permissions: Iterable[Iterable[str]]) -> FrozenSet[str]:
    """
    Effective permissions: direct grants united with every role's grants.

    Identity is the permission name, so a permission granted both directly
    and through a role appears once.
    """
    merged = set(direct)
    for names in role_permissions:
        merged.update(names)
    return frozenset(merged)


@dataclass(frozen=True)
class Actor:
    """The acting user as seen by the policies."""
    user_id: int
    role_ids: FrozenSet[int]
    role_names: FrozenSet[str]

    @property
    def is_master(self):
        return constants.MASTER_ROLE in self.role_names

    @property
    def is_admin(self):
        return constants.ADMIN_ROLE in self.role_names


@dataclass(frozen=True)
class Decision:
    """Outcome of a policy check; reason is set when denied."""
    allowed: bool
    reason: str = ''

    def __bool__(self):
        return self.allowed


ALLOW = Decision(True)


class RolePolicy:
    """
    Who may update or delete a role.

    master: any role except one they hold themself.
    admin (not master): not the master/admin roles and not one they hold.
    anyone else: nothing.
    Deletion is additionally refused for protected ids regardless of actor.

    The reserved tables are class attributes so a subclass can supply
    different ones.
    """

    protected_role_ids: AbstractSet[int] = constants.PROTECTED_ROLE_IDS
    reserved_role_names: AbstractSet[str] = constants.RESERVED_ROLE_NAMES
    reserved_role_ids: AbstractSet[int] = frozenset(constants.RESERVED_ROLE_IDS.values())

    @classmethod
    def is_reserved(cls, role_id, role_name) -> bool:
        return role_name in cls.reserved_role_names or role_id in cls.reserved_role_ids

    @classmethod
    def check_update(cls, actor: Actor, role_id: int, role_name: str) -> Decision:
        if actor.is_master:
            if role_id in actor.role_ids:
                return Decision(False, 'own_role')
            return ALLOW

        if actor.is_admin:
            if cls.is_reserved(role_id, role_name):
                return Decision(False, 'reserved_role')
            if role_id in actor.role_ids:
                return Decision(False, 'own_role')
            return ALLOW

        return Decision(False, 'insufficient_tier')

    @classmethod
    def check_delete(cls, actor: Actor, role_id: int, role_name: str) -> Decision:
        if role_id in cls.protected_role_ids:
            return Decision(False, 'protected_role')
        return cls.check_update(actor, role_id, role_name)

    @classmethod
    def can_update(cls, actor: Actor, role_id: int, role_name: str) -> bool:
        return cls.check_update(actor, role_id, role_name).allowed

    @classmethod
    def can_delete(cls, actor: Actor, role_id: int, role_name: str) -> bool:
        return cls.check_delete(actor, role_id, role_name).allowed


class UserPolicy:
    """
    Who may delete a user account.

    The root user can never be deleted and nobody deletes themself through
    the admin endpoints.
    """

    root_user_id: int = constants.ROOT_USER_ID

    @classmethod
    def check_delete(cls, acting_user_id: int, target_user_id: int) -> Decision:
        if target_user_id == cls.root_user_id:
            return Decision(False, 'root_user')
        if target_user_id == acting_user_id:
            return Decision(False, 'self')
        return ALLOW

    @classmethod
    def can_delete(cls, acting_user_id: int, target_user_id: int) -> bool:
        return cls.check_delete(acting_user_id, target_user_id).allowed

    @classmethod
    def can_verify(cls, target_user_id: int) -> bool:
        return target_user_id != cls.root_user_id

    @classmethod
    def filter_bulk_delete_ids(cls, acting_user_id: int, ids: Iterable[int]) -> List[int]:
        """
        Drop the root user, the acting user and duplicates from ids.

        Raises:
            ValidationFailed: if nothing is left to delete
        """
        kept = []
        seen = set()
        for user_id in ids:
            user_id = int(user_id)
            if user_id in seen:
                continue
            seen.add(user_id)
            if cls.can_delete(acting_user_id, user_id):
                kept.append(user_id)

        if not kept:
            raise ValidationFailed(
                'No users left to delete after excluding protected accounts',
                details={'ids': sorted(seen)}
            )
        return kept
