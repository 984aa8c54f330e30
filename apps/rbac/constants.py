"""
Reserved RBAC identities shared by the seeder and the authorization engine.
"""
from django.conf import settings

DEFAULT_GUARD = getattr(settings, 'RBAC_DEFAULT_GUARD', 'web')

MASTER_ROLE = 'master'
ADMIN_ROLE = 'admin'
MEMBER_ROLE = 'member'

# Seeded roles keep these ids; none of them can ever be deleted.
PROTECTED_ROLE_IDS = frozenset({1, 2, 3})

# Reserved role ids by name, for the admin tier checks.
RESERVED_ROLE_IDS = {
    MASTER_ROLE: 1,
    ADMIN_ROLE: 2,
}

# Roles an admin (non-master) may never modify.
RESERVED_ROLE_NAMES = frozenset(RESERVED_ROLE_IDS)

# The first account; never deletable, never re-verified.
ROOT_USER_ID = 1

CANONICAL_PERMISSIONS = [
    # users
    'users.view',
    'users.create',
    'users.update',
    'users.delete',

    # notes
    'notes.view',
    'notes.create',
    'notes.update',
    'notes.delete',

    # note folders
    'folders.manage',

    # files
    'files.view',
    'files.create',
    'files.update',
    'files.delete',

    # file folders
    'folders_files.manage',

    # system
    'roles.manage',
    'permissions.manage',
]

MEMBER_PERMISSIONS = [
    'notes.view',
    'notes.create',
    'notes.update',
    'notes.delete',
    'folders.manage',
    'files.view',
    'files.create',
    'files.update',
    'files.delete',
    'folders_files.manage',
]

ADMIN_PERMISSIONS = [
    'users.view',
    'users.create',
    'users.update',
] + MEMBER_PERMISSIONS

# Seed order matters: ids 1, 2, 3 follow this order on a fresh database.
DEFAULT_ROLES = {
    MASTER_ROLE: 'ALL',
    ADMIN_ROLE: ADMIN_PERMISSIONS,
    MEMBER_ROLE: MEMBER_PERMISSIONS,
}
