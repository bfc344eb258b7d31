"""
Management command to ensure the clinic roles exist and, optionally,
assign one to a user.

Usage:
    python manage.py ensure_roles
    python manage.py ensure_roles --email recepcion@clinica.co --role secretaria

Idempotent and safe to run multiple times.
"""
from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand, CommandError

from apps.authz.models import Role, RoleChoices, UserRole


class Command(BaseCommand):
    help = 'Ensure clinic roles exist and optionally assign a role to a user'

    def add_arguments(self, parser):
        parser.add_argument('--email', help='User to assign the role to')
        parser.add_argument('--role', choices=RoleChoices.values, help='Role to assign')

    def handle(self, *args, **options):
        for role_choice in RoleChoices:
            role, created = Role.objects.get_or_create(name=role_choice)
            if created:
                self.stdout.write(self.style.SUCCESS(f'  ✓ Created role: {role.name}'))
            else:
                self.stdout.write(f'  - Role exists: {role.name}')

        email, role_name = options.get('email'), options.get('role')
        if not email and not role_name:
            return
        if not (email and role_name):
            raise CommandError('--email and --role must be given together')

        User = get_user_model()
        try:
            user = User.objects.get(email=email)
        except User.DoesNotExist:
            raise CommandError(f'User not found: {email}')

        role = Role.objects.get(name=role_name)
        _, created = UserRole.objects.get_or_create(user=user, role=role)
        if created:
            self.stdout.write(self.style.SUCCESS(f'  ✓ Assigned {role_name} to {email}'))
        else:
            self.stdout.write(f'  - {email} already has {role_name}')
