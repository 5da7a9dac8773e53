# Seed Demo Data Management Command
import random
from datetime import timedelta
from decimal import Decimal

from django.core.management.base import BaseCommand, CommandError
from django.utils import timezone
from faker import Faker

from marketplace import exceptions
from marketplace.models import BookingStatus, Role
from marketplace.services import bookings, catalog, identity, reviews
from marketplace.services.bookings import BookingEvent

OFFERING_TITLES = [
    'Deep Home Cleaning', 'Plumbing Repair', 'Electrical Inspection',
    'AC Servicing', 'Furniture Assembly', 'Pest Control',
    'Appliance Repair', 'Interior Painting', 'Garden Maintenance',
]

# Each path is applied to a fresh PENDING booking by its customer or provider
LIFECYCLE_PATHS = [
    [],
    [BookingEvent.ACCEPT],
    [BookingEvent.REJECT],
    [BookingEvent.WITHDRAW],
    [BookingEvent.ACCEPT, BookingEvent.CANCEL],
    [BookingEvent.ACCEPT, BookingEvent.MARK_DONE],
    [BookingEvent.ACCEPT, BookingEvent.MARK_DONE],
]


class Command(BaseCommand):
    help = 'Populates the database with demo customers, providers, offerings, bookings and reviews.'

    def add_arguments(self, parser):
        parser.add_argument('--customers', type=int, default=20, help='Number of customers to register.')
        parser.add_argument('--providers', type=int, default=8, help='Number of providers to register.')
        parser.add_argument('--seed', type=int, default=None, help='Random seed for reproducible data.')
        parser.add_argument(
            '--password',
            default='ServiceSpot!2026',
            help='Password given to every demo account.',
        )

    def handle(self, *args, **options):
        if options['customers'] < 1 or options['providers'] < 1:
            raise CommandError('At least one customer and one provider are required.')

        self.fake = Faker()
        if options['seed'] is not None:
            Faker.seed(options['seed'])
            random.seed(options['seed'])

        password = options['password']
        self.stdout.write('Starting demo data population...')

        customers = self.register(Role.CUSTOMER, options['customers'], password)
        providers = self.register(Role.PROVIDER, options['providers'], password)
        if not customers or not providers:
            raise CommandError('Could not register enough demo accounts.')

        offerings = self.create_offerings(providers)
        completed = self.create_bookings(customers, providers, offerings)
        self.create_reviews(customers, completed)

        self.stdout.write(self.style.SUCCESS('Demo data population completed successfully!'))

    def register(self, role, count, password):
        sessions = {}
        for _ in range(count):
            email = self.fake.unique.email()
            try:
                principal = identity.register_principal(
                    email=email,
                    password=password,
                    display_name=self.fake.name(),
                    role=role,
                    phone=self.fake.numerify('98########'),
                )
            except exceptions.Conflict:
                self.stdout.write(f'  Skipping {email}: already registered.')
                continue
            except exceptions.ValidationError as exc:
                raise CommandError(f'Cannot register demo {role}: {exc.detail}') from exc
            sessions[principal.pk] = identity.authenticate(email, password, role)

        self.stdout.write(f'Registered {len(sessions)} {role}s.')
        return sessions

    def create_offerings(self, providers):
        offerings = {}
        for provider_id, session in providers.items():
            titles = random.sample(OFFERING_TITLES, random.randint(1, 3))
            offerings[provider_id] = [
                catalog.create_offering(
                    session,
                    title=title,
                    base_price=Decimal(random.uniform(20.0, 400.0)).quantize(Decimal('0.01')),
                    duration_minutes=random.choice([30, 60, 90, 120]),
                    description=self.fake.paragraph(),
                )
                for title in titles
            ]

        self.stdout.write(f'Created {sum(len(items) for items in offerings.values())} offerings.')
        return offerings

    def create_bookings(self, customers, providers, offerings):
        completed = []
        created = 0
        now = timezone.now()

        for customer_id, customer_session in customers.items():
            for _ in range(random.randint(0, 3)):
                provider_id = random.choice(list(providers))
                offering = random.choice(offerings[provider_id])
                booking = bookings.create_booking(
                    customer_session,
                    provider_id=provider_id,
                    offering_id=offering.pk,
                    slot=now + timedelta(days=random.randint(1, 30), hours=random.randint(8, 18)),
                    notes=self.fake.sentence(),
                )
                created += 1

                for event in random.choice(LIFECYCLE_PATHS):
                    actor = bookings.TRANSITIONS[event].actor
                    session = customer_session if actor == Role.CUSTOMER else providers[provider_id]
                    booking = bookings.transition_booking(session, booking.pk, event)

                if booking.status == BookingStatus.COMPLETED:
                    completed.append(booking)

        self.stdout.write(f'Created {created} bookings ({len(completed)} completed).')
        return completed

    def create_reviews(self, customers, completed):
        written = 0
        for booking in completed:
            # 70% chance of leaving a review
            if random.random() < 0.7:
                reviews.create_review(
                    customers[booking.customer_id],
                    booking.pk,
                    rating=random.randint(3, 5),
                    comment=f'{self.fake.sentence(nb_words=8)} {self.fake.sentence(nb_words=8)}',
                )
                written += 1

        self.stdout.write(f'Created {written} reviews.')
