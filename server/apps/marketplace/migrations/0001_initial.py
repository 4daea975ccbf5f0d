from decimal import Decimal

from django.conf import settings
import django.core.validators
from django.db import migrations, models
import django.db.models.deletion
import django.utils.timezone
import uuid

import server.apps.marketplace.infrastructure.codes


def _rate_validators():
    return [
        django.core.validators.MinValueValidator(Decimal('0')),
        django.core.validators.MaxValueValidator(Decimal('100')),
    ]


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('drive', '0001_initial'),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Listing',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('title', models.CharField(max_length=100)),
                ('description', models.CharField(blank=True, default='', max_length=1000)),
                ('price', models.DecimalField(decimal_places=2, max_digits=12)),
                ('status', models.CharField(
                    choices=[('active', 'Active'), ('inactive', 'Inactive'), ('suspended', 'Suspended')],
                    db_index=True,
                    default='active',
                    max_length=32,
                )),
                ('tags', models.JSONField(blank=True, default=list)),
                ('views', models.PositiveIntegerField(default=0)),
                ('affiliate_enabled', models.BooleanField(default=False)),
                ('default_commission_rate', models.DecimalField(
                    blank=True,
                    decimal_places=2,
                    help_text='Rate (percent) for self-registered affiliates',
                    max_digits=5,
                    null=True,
                    validators=_rate_validators(),
                )),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('item', models.OneToOneField(
                    on_delete=django.db.models.deletion.CASCADE,
                    related_name='listing',
                    to='drive.item',
                )),
                ('seller', models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE,
                    related_name='listings',
                    to=settings.AUTH_USER_MODEL,
                )),
            ],
            options={
                'verbose_name': 'Listing',
                'verbose_name_plural': 'Listings',
                'ordering': ['-created_at', '-id'],
                'constraints': [
                    models.CheckConstraint(
                        condition=models.Q(price__gt=0),
                        name='market_listing_price_positive',
                    ),
                    models.CheckConstraint(
                        condition=(
                            models.Q(default_commission_rate__isnull=True)
                            | models.Q(default_commission_rate__gte=0, default_commission_rate__lte=100)
                        ),
                        name='market_listing_rate_range',
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name='SharedLink',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('link_id', models.CharField(max_length=32, unique=True)),
                ('link_type', models.CharField(
                    choices=[('public', 'Public'), ('monetized', 'Monetized')],
                    default='public',
                    max_length=32,
                )),
                ('price', models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True)),
                ('title', models.CharField(max_length=100)),
                ('description', models.CharField(blank=True, default='', max_length=1000)),
                ('is_active', models.BooleanField(default=True)),
                ('expires_at', models.DateTimeField(blank=True, db_index=True, null=True)),
                ('access_count', models.PositiveIntegerField(default=0)),
                ('affiliate_enabled', models.BooleanField(default=False)),
                ('default_commission_rate', models.DecimalField(
                    blank=True,
                    decimal_places=2,
                    max_digits=5,
                    null=True,
                    validators=_rate_validators(),
                )),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('item', models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE,
                    related_name='shared_links',
                    to='drive.item',
                )),
                ('owner', models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE,
                    related_name='shared_links',
                    to=settings.AUTH_USER_MODEL,
                )),
                ('paid_users', models.ManyToManyField(
                    blank=True,
                    related_name='paid_shared_links',
                    to=settings.AUTH_USER_MODEL,
                )),
            ],
            options={
                'verbose_name': 'Shared Link',
                'verbose_name_plural': 'Shared Links',
                'ordering': ['-created_at', '-id'],
                'constraints': [
                    models.CheckConstraint(
                        condition=(
                            models.Q(
                                link_type='monetized',
                                price__isnull=False,
                                price__gt=0,
                            )
                            | models.Q(link_type='public', price__isnull=True)
                        ),
                        name='market_link_price_matches_type',
                    ),
                    models.UniqueConstraint(
                        condition=models.Q(is_active=True),
                        fields=('item', 'owner'),
                        name='market_one_active_link_per_item',
                    ),
                    models.CheckConstraint(
                        condition=(
                            models.Q(default_commission_rate__isnull=True)
                            | models.Q(default_commission_rate__gte=0, default_commission_rate__lte=100)
                        ),
                        name='market_link_rate_range',
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name='Affiliate',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('commission_rate', models.DecimalField(
                    decimal_places=2,
                    max_digits=5,
                    validators=_rate_validators(),
                )),
                ('affiliate_code', models.CharField(max_length=20, unique=True)),
                ('status', models.CharField(
                    choices=[('active', 'Active'), ('inactive', 'Inactive'), ('suspended', 'Suspended')],
                    default='active',
                    max_length=32,
                )),
                ('total_earnings', models.DecimalField(decimal_places=6, default=Decimal('0'), max_digits=18)),
                ('total_sales', models.PositiveIntegerField(default=0)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('listing', models.ForeignKey(
                    blank=True,
                    null=True,
                    on_delete=django.db.models.deletion.CASCADE,
                    related_name='affiliates',
                    to='marketplace.listing',
                )),
                ('shared_link', models.ForeignKey(
                    blank=True,
                    null=True,
                    on_delete=django.db.models.deletion.CASCADE,
                    related_name='affiliates',
                    to='marketplace.sharedlink',
                )),
                ('owner', models.ForeignKey(
                    help_text='Owner of the promoted content',
                    on_delete=django.db.models.deletion.CASCADE,
                    related_name='content_affiliates',
                    to=settings.AUTH_USER_MODEL,
                )),
                ('affiliate_user', models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE,
                    related_name='affiliations',
                    to=settings.AUTH_USER_MODEL,
                )),
            ],
            options={
                'verbose_name': 'Affiliate',
                'verbose_name_plural': 'Affiliates',
                'ordering': ['-created_at', '-id'],
                'constraints': [
                    models.CheckConstraint(
                        condition=(
                            models.Q(listing__isnull=False, shared_link__isnull=True)
                            | models.Q(listing__isnull=True, shared_link__isnull=False)
                        ),
                        name='market_affiliate_one_content',
                    ),
                    models.UniqueConstraint(
                        condition=models.Q(listing__isnull=False),
                        fields=('listing', 'owner', 'affiliate_user'),
                        name='market_affiliate_listing_unique',
                    ),
                    models.UniqueConstraint(
                        condition=models.Q(shared_link__isnull=False),
                        fields=('shared_link', 'owner', 'affiliate_user'),
                        name='market_affiliate_link_unique',
                    ),
                    models.CheckConstraint(
                        condition=models.Q(commission_rate__gte=0, commission_rate__lte=100),
                        name='market_affiliate_rate_range',
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name='Transaction',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('amount', models.DecimalField(decimal_places=6, max_digits=18)),
                ('status', models.CharField(
                    choices=[
                        ('completed', 'Completed'),
                        ('pending', 'Pending'),
                        ('failed', 'Failed'),
                        ('refunded', 'Refunded'),
                    ],
                    db_index=True,
                    default='pending',
                    max_length=32,
                )),
                ('transaction_id', models.UUIDField(default=uuid.uuid4, editable=False, unique=True)),
                ('receipt_number', models.CharField(
                    default=server.apps.marketplace.infrastructure.codes.generate_receipt_number,
                    editable=False,
                    max_length=40,
                    unique=True,
                )),
                ('purchase_date', models.DateTimeField(default=django.utils.timezone.now)),
                ('transaction_type', models.CharField(
                    choices=[('purchase', 'Purchase'), ('sale', 'Sale'), ('commission', 'Commission')],
                    default='purchase',
                    max_length=32,
                )),
                ('payment_flow', models.CharField(
                    choices=[('direct', 'Direct'), ('admin', 'Admin')],
                    default='direct',
                    max_length=32,
                )),
                ('affiliate_info', models.JSONField(blank=True, null=True)),
                ('metadata', models.JSONField(blank=True, default=dict)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('listing', models.ForeignKey(
                    blank=True,
                    null=True,
                    on_delete=django.db.models.deletion.SET_NULL,
                    related_name='transactions',
                    to='marketplace.listing',
                )),
                ('shared_link', models.ForeignKey(
                    blank=True,
                    null=True,
                    on_delete=django.db.models.deletion.SET_NULL,
                    related_name='transactions',
                    to='marketplace.sharedlink',
                )),
                ('buyer', models.ForeignKey(
                    on_delete=django.db.models.deletion.PROTECT,
                    related_name='purchases',
                    to=settings.AUTH_USER_MODEL,
                )),
                ('seller', models.ForeignKey(
                    on_delete=django.db.models.deletion.PROTECT,
                    related_name='sales',
                    to=settings.AUTH_USER_MODEL,
                )),
                ('item', models.ForeignKey(
                    blank=True,
                    null=True,
                    on_delete=django.db.models.deletion.SET_NULL,
                    related_name='transactions',
                    to='drive.item',
                )),
                ('parent_transaction', models.ForeignKey(
                    blank=True,
                    null=True,
                    on_delete=django.db.models.deletion.SET_NULL,
                    related_name='child_transactions',
                    to='marketplace.transaction',
                )),
            ],
            options={
                'verbose_name': 'Transaction',
                'verbose_name_plural': 'Transactions',
                'ordering': ['-purchase_date', '-id'],
                'indexes': [
                    models.Index(fields=['buyer', 'transaction_type'], name='market_tx_buyer_type_idx'),
                    models.Index(fields=['seller', 'transaction_type'], name='market_tx_seller_type_idx'),
                ],
                'constraints': [
                    models.CheckConstraint(
                        condition=models.Q(amount__gte=0),
                        name='market_tx_amount_not_negative',
                    ),
                    models.UniqueConstraint(
                        condition=models.Q(
                            transaction_type='purchase',
                            status='completed',
                            listing__isnull=False,
                        ),
                        fields=('buyer', 'listing'),
                        name='market_one_listing_purchase',
                    ),
                    models.UniqueConstraint(
                        condition=models.Q(
                            transaction_type='purchase',
                            status='completed',
                            shared_link__isnull=False,
                        ),
                        fields=('buyer', 'shared_link'),
                        name='market_one_link_purchase',
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name='Commission',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('commission_amount', models.DecimalField(decimal_places=6, max_digits=18)),
                ('commission_rate', models.DecimalField(
                    decimal_places=2,
                    max_digits=5,
                    validators=_rate_validators(),
                )),
                ('status', models.CharField(
                    choices=[('pending', 'Pending'), ('paid', 'Paid'), ('failed', 'Failed')],
                    db_index=True,
                    default='pending',
                    max_length=32,
                )),
                ('paid_at', models.DateTimeField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('affiliate', models.ForeignKey(
                    blank=True,
                    null=True,
                    on_delete=django.db.models.deletion.SET_NULL,
                    related_name='commissions',
                    to='marketplace.affiliate',
                )),
                ('original_transaction', models.ForeignKey(
                    on_delete=django.db.models.deletion.PROTECT,
                    related_name='commissions',
                    to='marketplace.transaction',
                )),
                ('commission_transaction', models.OneToOneField(
                    blank=True,
                    null=True,
                    on_delete=django.db.models.deletion.SET_NULL,
                    related_name='commission_record',
                    to='marketplace.transaction',
                )),
            ],
            options={
                'verbose_name': 'Commission',
                'verbose_name_plural': 'Commissions',
                'ordering': ['-created_at', '-id'],
                'constraints': [
                    models.UniqueConstraint(
                        fields=('original_transaction', 'affiliate'),
                        name='market_one_commission_per_sale',
                    ),
                    models.CheckConstraint(
                        condition=models.Q(commission_amount__gte=0),
                        name='market_commission_not_negative',
                    ),
                ],
            },
        ),
    ]
