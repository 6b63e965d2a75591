from django.core.management.base import BaseCommand, CommandError
from django.contrib.auth import get_user_model
from django.db import transaction

User = get_user_model()


class Command(BaseCommand):
    help = 'Create the first admin account if no admin exists yet'

    def add_arguments(self, parser):
        parser.add_argument('--email', type=str, default='admin@example.com', help='Admin email')
        parser.add_argument('--password', type=str, required=True, help='Admin password')
        parser.add_argument('--full-name', type=str, default='Admin User', help='Display name')

    def handle(self, *args, **options):
        email = options['email']

        with transaction.atomic():
            if User.objects.filter(role=User.Role.ADMIN).exists():
                self.stdout.write(
                    self.style.WARNING('An admin already exists. Manage further accounts from /admin/.')
                )
                return

            if User.objects.filter(email__iexact=email).exists():
                raise CommandError(f'User "{email}" already exists')

            user = User.objects.create_superuser(
                username=email,
                email=email,
                password=options['password'],
                full_name=options['full_name'],
            )

        self.stdout.write(self.style.SUCCESS(f'Admin user created: {user.email} (ID: {user.id})'))
