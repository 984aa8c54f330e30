"""
Management command to seed the permission catalog and the default roles.

Creates the canonical permissions, the master/admin/member roles with their
grants and, optionally, one verified account per role. This command is
idempotent and safe to re-run.
"""
from django.core.management.base import BaseCommand
from django.db import transaction
from django.utils import timezone

from apps.rbac.constants import CANONICAL_PERMISSIONS, DEFAULT_GUARD, DEFAULT_ROLES
from apps.rbac.models import Permission, Role, User
from apps.rbac.services import RBACService


DEFAULT_USERS = [
    # (username, email, name, role)
    ('osmarlg', 'master@notes-hub.test', 'Master User', 'master'),
    ('admin', 'admin@notes-hub.test', 'Admin User', 'admin'),
    ('member', 'member@notes-hub.test', 'Member User', 'member'),
]


class Command(BaseCommand):
    help = 'Seed canonical permissions, default roles and optional demo users (idempotent)'

    def add_arguments(self, parser):
        parser.add_argument(
            '--with-users',
            action='store_true',
            help='Also create one verified user per default role'
        )
        parser.add_argument(
            '--password',
            type=str,
            default='password',
            help='Password for the demo users (default: password)'
        )
        parser.add_argument(
            '--guard',
            type=str,
            default=DEFAULT_GUARD,
            help=f'Guard to seed (default: {DEFAULT_GUARD})'
        )

    @transaction.atomic
    def handle(self, *args, **options):
        guard = options['guard']

        self.stdout.write('Seeding canonical permissions...\n')
        created_count = 0
        for name in CANONICAL_PERMISSIONS:
            permission, created = Permission.objects.get_or_create(name=name, guard_name=guard)
            if created:
                created_count += 1
                self.stdout.write(self.style.SUCCESS(f'✓ Created: {permission.name}'))
            else:
                self.stdout.write(self.style.HTTP_INFO(f'  Exists: {permission.name}'))

        self.stdout.write(
            self.style.SUCCESS(
                f'\n✓ Permissions: {created_count} created, '
                f'{len(CANONICAL_PERMISSIONS) - created_count} unchanged'
            )
        )

        self.stdout.write('\nSeeding roles...\n')
        roles = {}
        for role_name, grants in DEFAULT_ROLES.items():
            role, created = Role.objects.get_or_create(name=role_name, guard_name=guard)
            roles[role_name] = role

            permissions = Permission.objects.for_guard(guard)
            if grants != 'ALL':
                permissions = permissions.filter(name__in=grants)
            names = RBACService.sync_permissions(role, list(permissions.values_list('id', flat=True)))

            marker = '✓ Created' if created else '↻ Synced'
            self.stdout.write(
                self.style.SUCCESS(f'{marker}: {role.name} (id {role.id}) with {len(names)} permissions')
            )

        if options['with_users']:
            self._seed_users(roles, options['password'])

        self.stdout.write(self.style.SUCCESS('\n✓ RBAC seeding complete'))

    def _seed_users(self, roles, password):
        self.stdout.write('\nSeeding users...\n')
        for username, email, name, role_name in DEFAULT_USERS:
            user = User.objects.filter(username=username).first()
            if user is None:
                user = User.objects.create_user(
                    username=username,
                    email=email,
                    password=password,
                    name=name,
                    email_verified_at=timezone.now(),
                )
                self.stdout.write(self.style.SUCCESS(f'✓ Created user: {username}'))
            else:
                self.stdout.write(self.style.HTTP_INFO(f'  Exists: {username}'))

            RBACService.sync_roles(user, [roles[role_name].id])
            self.stdout.write(f'  • {username:<12} → {role_name}')
