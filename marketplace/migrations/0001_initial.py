import django.contrib.auth.validators
import django.core.validators
import django.db.models.deletion
import django.utils.timezone
import marketplace.models
import marketplace.validators
from decimal import Decimal
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('auth', '0012_alter_user_first_name_max_length'),
    ]

    operations = [
        migrations.CreateModel(
            name='Principal',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('password', models.CharField(max_length=128, verbose_name='password')),
                ('last_login', models.DateTimeField(blank=True, null=True, verbose_name='last login')),
                ('is_superuser', models.BooleanField(default=False, help_text='Designates that this user has all permissions without explicitly assigning them.', verbose_name='superuser status')),
                ('username', models.CharField(error_messages={'unique': 'A user with that username already exists.'}, help_text='Required. 150 characters or fewer. Letters, digits and @/./+/-/_ only.', max_length=150, unique=True, validators=[django.contrib.auth.validators.UnicodeUsernameValidator()], verbose_name='username')),
                ('first_name', models.CharField(blank=True, max_length=150, verbose_name='first name')),
                ('last_name', models.CharField(blank=True, max_length=150, verbose_name='last name')),
                ('is_staff', models.BooleanField(default=False, help_text='Designates whether the user can log into this admin site.', verbose_name='staff status')),
                ('is_active', models.BooleanField(default=True, help_text='Designates whether this user should be treated as active. Unselect this instead of deleting accounts.', verbose_name='active')),
                ('date_joined', models.DateTimeField(default=django.utils.timezone.now, verbose_name='date joined')),
                ('email', models.EmailField(error_messages={'unique': 'A user with that email already exists.'}, help_text='Required. Enter a valid email address.', max_length=254, unique=True, verbose_name='email address')),
                ('display_name', models.CharField(blank=True, default='', help_text='Name shown to other users.', max_length=150, verbose_name='display name')),
                ('phone_number', models.CharField(blank=True, default='', help_text='Optional. Enter phone number in international format.', max_length=20, validators=[marketplace.validators.validate_phone_number], verbose_name='phone number')),
                ('role', models.CharField(choices=[('customer', 'Customer'), ('provider', 'Provider'), ('admin', 'Administrator')], help_text='Required. Fixed when the account is created.', max_length=10, verbose_name='role')),
                ('is_verified', models.BooleanField(default=False, help_text='Set by an administrator once the identity has been checked.', verbose_name='verified status')),
                ('rating_average', models.DecimalField(decimal_places=2, default=Decimal('0.00'), help_text='Cached average of reviews received as a provider.', max_digits=3, validators=[django.core.validators.MinValueValidator(Decimal('0.00'), message='Rating cannot be negative.'), django.core.validators.MaxValueValidator(Decimal('5.00'), message='Rating cannot exceed 5.00.')], verbose_name='rating average')),
                ('review_count', models.PositiveIntegerField(default=0, help_text='Cached number of reviews received as a provider.', verbose_name='review count')),
                ('created_at', models.DateTimeField(auto_now_add=True, help_text='Timestamp when the account was created.', verbose_name='created at')),
                ('updated_at', models.DateTimeField(auto_now=True, help_text='Timestamp when the account was last updated.', verbose_name='updated at')),
                ('groups', models.ManyToManyField(blank=True, help_text='The groups this user belongs to. A user will get all permissions granted to each of their groups.', related_name='user_set', related_query_name='user', to='auth.group', verbose_name='groups')),
                ('user_permissions', models.ManyToManyField(blank=True, help_text='Specific permissions for this user.', related_name='user_set', related_query_name='user', to='auth.permission', verbose_name='user permissions')),
            ],
            options={
                'verbose_name': 'principal',
                'verbose_name_plural': 'principals',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['role'], name='marketplace_role_3f1a2c_idx'),
                    models.Index(fields=['is_verified'], name='marketplace_is_veri_8b2e4d_idx'),
                    models.Index(fields=['is_active'], name='marketplace_is_acti_c6d91f_idx'),
                ],
            },
            managers=[
                ('objects', marketplace.models.PrincipalManager()),
            ],
        ),
        migrations.CreateModel(
            name='ServiceOffering',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('title', models.CharField(help_text='Short name of the service', max_length=100, verbose_name='title')),
                ('description', models.TextField(blank=True, default='', help_text='Detailed description of the service', verbose_name='description')),
                ('base_price', models.DecimalField(decimal_places=2, help_text='Price charged for one booking', max_digits=10, verbose_name='base price')),
                ('duration_minutes', models.PositiveIntegerField(default=60, help_text='Expected length of one appointment', validators=[django.core.validators.MinValueValidator(1)], verbose_name='duration in minutes')),
                ('is_active', models.BooleanField(default=True, help_text='Whether the offering can currently be booked', verbose_name='active')),
                ('created_at', models.DateTimeField(auto_now_add=True, verbose_name='created at')),
                ('updated_at', models.DateTimeField(auto_now=True, verbose_name='updated at')),
                ('provider', models.ForeignKey(help_text='Provider offering this service', on_delete=django.db.models.deletion.PROTECT, related_name='offerings', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'service offering',
                'verbose_name_plural': 'service offerings',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['provider'], name='marketplace_provide_5a7e10_idx'),
                    models.Index(fields=['is_active'], name='marketplace_is_acti_42b8d3_idx'),
                ],
                'constraints': [
                    models.CheckConstraint(condition=models.Q(base_price__gt=0), name='offering_base_price_positive'),
                ],
            },
        ),
        migrations.CreateModel(
            name='Booking',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('reference', models.CharField(blank=True, help_text='Human readable reference, e.g. BK-2026-000042', max_length=20, null=True, unique=True, verbose_name='reference')),
                ('slot', models.DateTimeField(help_text='Requested start time of the appointment', verbose_name='slot')),
                ('duration_minutes', models.PositiveIntegerField(help_text='Copied from the offering at creation', verbose_name='duration in minutes')),
                ('status', models.CharField(choices=[('pending', 'Pending'), ('confirmed', 'Confirmed'), ('cancelled', 'Cancelled'), ('completed', 'Completed')], default='pending', max_length=20, verbose_name='status')),
                ('notes', models.TextField(blank=True, default='', max_length=1000, verbose_name='customer notes')),
                ('provider_notes', models.TextField(blank=True, default='', verbose_name='provider notes')),
                ('cancellation_reason', models.TextField(blank=True, default='', verbose_name='cancellation reason')),
                ('cancelled_by', models.CharField(blank=True, choices=[('customer', 'Customer'), ('provider', 'Provider')], default='', max_length=10, verbose_name='cancelled by')),
                ('total_amount', models.DecimalField(decimal_places=2, help_text='Copied from the offering base price at creation', max_digits=10, verbose_name='total amount')),
                ('created_at', models.DateTimeField(auto_now_add=True, verbose_name='created at')),
                ('status_changed_at', models.DateTimeField(verbose_name='status changed at')),
                ('confirmed_at', models.DateTimeField(blank=True, null=True, verbose_name='confirmed at')),
                ('completed_at', models.DateTimeField(blank=True, null=True, verbose_name='completed at')),
                ('cancelled_at', models.DateTimeField(blank=True, null=True, verbose_name='cancelled at')),
                ('customer', models.ForeignKey(help_text='Customer making the booking', on_delete=django.db.models.deletion.PROTECT, related_name='customer_bookings', to=settings.AUTH_USER_MODEL)),
                ('provider', models.ForeignKey(help_text='Provider delivering the service', on_delete=django.db.models.deletion.PROTECT, related_name='provider_bookings', to=settings.AUTH_USER_MODEL)),
                ('offering', models.ForeignKey(help_text='Service being booked', on_delete=django.db.models.deletion.PROTECT, related_name='bookings', to='marketplace.serviceoffering')),
            ],
            options={
                'verbose_name': 'booking',
                'verbose_name_plural': 'bookings',
                'ordering': ['-created_at', '-id'],
                'indexes': [
                    models.Index(fields=['customer'], name='marketplace_custome_1d0c5e_idx'),
                    models.Index(fields=['provider'], name='marketplace_provide_9e3f27_idx'),
                    models.Index(fields=['offering'], name='marketplace_offerin_77a2b1_idx'),
                    models.Index(fields=['status'], name='marketplace_status_0b6c48_idx'),
                    models.Index(fields=['slot'], name='marketplace_slot_e4a913_idx'),
                ],
                'constraints': [
                    models.CheckConstraint(condition=models.Q(total_amount__gte=0), name='booking_total_amount_not_negative'),
                ],
            },
        ),
        migrations.CreateModel(
            name='Review',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('rating', models.PositiveSmallIntegerField(help_text='Rating from 1 to 5 stars', validators=[django.core.validators.MinValueValidator(1, message='Rating must be at least 1.'), django.core.validators.MaxValueValidator(5, message='Rating must be at most 5.')], verbose_name='rating')),
                ('comment', models.TextField(verbose_name='comment')),
                ('created_at', models.DateTimeField(auto_now_add=True, verbose_name='created at')),
                ('booking', models.OneToOneField(help_text='Booking being reviewed (one review per booking)', on_delete=django.db.models.deletion.PROTECT, related_name='review', to='marketplace.booking')),
                ('customer', models.ForeignKey(help_text='Customer writing the review', on_delete=django.db.models.deletion.PROTECT, related_name='reviews_written', to=settings.AUTH_USER_MODEL)),
                ('provider', models.ForeignKey(help_text='Provider being reviewed', on_delete=django.db.models.deletion.PROTECT, related_name='reviews_received', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'review',
                'verbose_name_plural': 'reviews',
                'ordering': ['-created_at', '-id'],
                'indexes': [
                    models.Index(fields=['customer'], name='marketplace_custome_6b81fa_idx'),
                    models.Index(fields=['provider'], name='marketplace_provide_c23d05_idx'),
                    models.Index(fields=['rating'], name='marketplace_rating_a94e7c_idx'),
                    models.Index(fields=['created_at'], name='marketplace_created_5f0d2b_idx'),
                ],
                'constraints': [
                    models.CheckConstraint(condition=models.Q(('rating__gte', 1), ('rating__lte', 5)), name='review_rating_in_range'),
                ],
            },
        ),
    ]
