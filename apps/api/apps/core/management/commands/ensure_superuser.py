"""
Management command to ensure the first Admin exists (for Docker startup).

Creates the superuser from DJANGO_SUPERUSER_EMAIL / DJANGO_SUPERUSER_PASSWORD
and gives it the `admin` clinic role; Django's is_superuser alone grants
nothing in the clinic operations.
"""
import os

from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand

from apps.authz.models import Role, RoleChoices, UserRole


class Command(BaseCommand):
    help = 'Create the bootstrap Admin user if it does not exist'

    def handle(self, *args, **options):
        User = get_user_model()

        email = os.environ.get('DJANGO_SUPERUSER_EMAIL', 'admin@example.com')
        password = os.environ.get('DJANGO_SUPERUSER_PASSWORD', 'admin123dev')

        user = User.objects.filter(email=email).first()
        if user is None:
            user = User.objects.create_superuser(email=email, password=password)
            self.stdout.write(self.style.SUCCESS(f'Superuser "{email}" created successfully'))
        else:
            self.stdout.write(self.style.WARNING(f'Superuser "{email}" already exists'))

        role, _ = Role.objects.get_or_create(name=RoleChoices.ADMIN)
        _, assigned = UserRole.objects.get_or_create(user=user, role=role)
        if assigned:
            self.stdout.write(self.style.SUCCESS(f'Assigned admin role to "{email}"'))
