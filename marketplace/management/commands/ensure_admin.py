import logging
import os

from django.core.management.base import BaseCommand, CommandError
from django.db import IntegrityError

from marketplace.models import Principal

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = (
        'Creates the bootstrap administrator account if it does not exist. '
        'Reads ADMIN_EMAIL, ADMIN_PASSWORD, ADMIN_NAME and ADMIN_PHONE from the environment.'
    )

    def add_arguments(self, parser):
        parser.add_argument('--email', default=os.environ.get('ADMIN_EMAIL', 'admin@servicespot.com'))
        parser.add_argument('--name', default=os.environ.get('ADMIN_NAME', 'System Administrator'))
        parser.add_argument('--phone', default=os.environ.get('ADMIN_PHONE', ''))

    def handle(self, *args, **options):
        email = Principal.objects.normalize_email(options['email'])

        if Principal.objects.filter(email__iexact=email).exists():
            self.stdout.write(f'Admin account already exists: {email}')
            return

        password = os.environ.get('ADMIN_PASSWORD')
        if not password:
            raise CommandError('ADMIN_PASSWORD must be set to create the admin account.')

        try:
            admin = Principal.objects.create_superuser(
                email=email,
                password=password,
                display_name=options['name'],
                phone_number=options['phone'],
            )
        except IntegrityError as exc:
            raise CommandError(f'Could not create admin account {email}: {exc}') from exc

        logger.info(f"Admin account created. Principal ID: {admin.pk}, Email: {email}")
        self.stdout.write(self.style.SUCCESS(f'Admin account created successfully: {email}'))
