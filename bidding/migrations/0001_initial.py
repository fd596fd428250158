import bidding.models
from django.conf import settings
from django.db import migrations, models
import django.db.models.deletion
import django.utils.timezone


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Auction',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('title', models.CharField(max_length=200)),
                ('description', models.TextField(blank=True)),
                ('image_url', models.URLField(blank=True, null=True)),
                ('starting_price', models.DecimalField(decimal_places=2, max_digits=10)),
                ('current_price', models.DecimalField(decimal_places=2, max_digits=10)),
                ('bid_increment_minimum', models.DecimalField(blank=True, decimal_places=2, max_digits=10, null=True)),
                ('start_time', models.DateTimeField()),
                ('end_time', models.DateTimeField()),
                ('status', models.CharField(choices=[('upcoming', 'Upcoming'), ('active', 'Active'), ('ended', 'Ended'), ('canceled', 'Canceled')], default='upcoming', max_length=10)),
                ('extension_time_left_minutes', models.PositiveIntegerField(blank=True, null=True)),
                ('extension_duration_minutes', models.PositiveIntegerField(blank=True, null=True)),
                ('max_extensions_allowed', models.PositiveIntegerField(blank=True, null=True)),
                ('extension_count', models.PositiveIntegerField(default=0)),
                ('duration_in_minutes', models.PositiveIntegerField(blank=True, null=True)),
                ('separation_time_in_minutes', models.PositiveIntegerField(blank=True, null=True)),
                ('is_finalized', models.BooleanField(default=False)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('creator', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='auctions_created', to=settings.AUTH_USER_MODEL)),
                ('winner', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='auctions_won', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['status'], name='auction_status_idx'),
                    models.Index(fields=['end_time'], name='auction_end_time_idx'),
                    models.Index(fields=['start_time', 'end_time'], name='auction_window_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='Bid',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('amount', models.DecimalField(decimal_places=2, max_digits=10)),
                ('created_at', models.DateTimeField(default=django.utils.timezone.now)),
                ('auction', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='bids', to='bidding.auction')),
                ('bidder', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='bids', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'ordering': ['-amount'],
                'indexes': [
                    models.Index(fields=['auction', 'amount'], name='bid_auction_amount_idx'),
                    models.Index(fields=['auction', 'created_at'], name='bid_auction_created_idx'),
                    models.Index(fields=['bidder'], name='bid_bidder_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='AutoBid',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('max_bid_amount', models.DecimalField(decimal_places=2, max_digits=10)),
                ('target_auction_count', models.PositiveIntegerField()),
                ('is_active', models.BooleanField(default=True)),
                ('current_win_count', models.PositiveIntegerField(default=0)),
                ('created_at', models.DateTimeField(default=django.utils.timezone.now)),
                ('last_processed_at', models.DateTimeField(blank=True, null=True)),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='autobids', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'ordering': ['-max_bid_amount', 'created_at', 'id'],
                'indexes': [
                    models.Index(fields=['user'], name='autobid_user_idx'),
                    models.Index(fields=['is_active'], name='autobid_active_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='AutoBidClaim',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('auction', models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, related_name='claim', to='bidding.auction')),
                ('autobid', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='claims', to='bidding.autobid')),
                ('bid', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to='bidding.bid')),
            ],
            options={
                'indexes': [
                    models.Index(fields=['autobid'], name='claim_autobid_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='AuctionEvent',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('event_type', models.CharField(choices=[('bid', 'Bid'), ('extension', 'Extension')], max_length=20)),
                ('timestamp', models.DateTimeField()),
                ('message', models.CharField(max_length=255)),
                ('amount', models.DecimalField(blank=True, decimal_places=2, max_digits=10, null=True)),
                ('new_end_time', models.DateTimeField(blank=True, null=True)),
                ('extension_count', models.PositiveIntegerField(blank=True, null=True)),
                ('extension_minutes', models.PositiveIntegerField(blank=True, null=True)),
                ('auction', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='events', to='bidding.auction')),
                ('bidder', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'ordering': ['timestamp', 'id'],
                'indexes': [
                    models.Index(fields=['auction', 'timestamp'], name='event_auction_time_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='CouponBundle',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('quantity', models.PositiveIntegerField(default=bidding.models.default_coupon_quantity)),
                ('description', models.CharField(max_length=255)),
                ('auction', models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, related_name='coupon_bundle', to='bidding.auction')),
                ('winner', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='coupon_bundles', to=settings.AUTH_USER_MODEL)),
            ],
        ),
        migrations.CreateModel(
            name='Coupon',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('code', models.CharField(blank=True, max_length=64, null=True, unique=True)),
                ('is_redeemed', models.BooleanField(default=False)),
                ('redeemed_at', models.DateTimeField(blank=True, null=True)),
                ('bundle', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='coupons', to='bidding.couponbundle')),
                ('owner', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='coupons', to=settings.AUTH_USER_MODEL)),
                ('redeemed_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'indexes': [
                    models.Index(fields=['owner'], name='coupon_owner_idx'),
                ],
            },
        ),
    ]
