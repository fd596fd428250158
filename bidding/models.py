from datetime import timedelta

from django.conf import settings
from django.contrib.auth.models import User
from django.core.exceptions import ValidationError
from django.db import models
from django.utils import timezone


class Auction(models.Model):
    UPCOMING = 'upcoming'
    ACTIVE = 'active'
    ENDED = 'ended'
    CANCELED = 'canceled'

    STATUS_CHOICES = (
        (UPCOMING, 'Upcoming'),
        (ACTIVE, 'Active'),
        (ENDED, 'Ended'),
        (CANCELED, 'Canceled'),
    )

    title = models.CharField(max_length=200)
    description = models.TextField(blank=True)
    image_url = models.URLField(blank=True, null=True)
    starting_price = models.DecimalField(max_digits=10, decimal_places=2)
    current_price = models.DecimalField(max_digits=10, decimal_places=2)
    bid_increment_minimum = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    creator = models.ForeignKey(User, on_delete=models.CASCADE, related_name='auctions_created')
    start_time = models.DateTimeField()
    end_time = models.DateTimeField()
    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default=UPCOMING)

    # Anti-sniping policy; only in force when all three are set
    extension_time_left_minutes = models.PositiveIntegerField(null=True, blank=True)
    extension_duration_minutes = models.PositiveIntegerField(null=True, blank=True)
    max_extensions_allowed = models.PositiveIntegerField(null=True, blank=True)
    extension_count = models.PositiveIntegerField(default=0)

    # Series metadata, kept for display
    duration_in_minutes = models.PositiveIntegerField(null=True, blank=True)
    separation_time_in_minutes = models.PositiveIntegerField(null=True, blank=True)

    winner = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='auctions_won'
    )
    is_finalized = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['status'], name='auction_status_idx'),
            models.Index(fields=['end_time'], name='auction_end_time_idx'),
            models.Index(fields=['start_time', 'end_time'], name='auction_window_idx'),
        ]

    def __str__(self):
        return f"{self.title} (Status: {self.status})"

    def clean(self):
        if self.end_time <= self.start_time:
            raise ValidationError("End time must be after start time")

        if self.current_price is not None and self.current_price < self.starting_price:
            raise ValidationError("Current price cannot be below the starting price")

        if self.max_extensions_allowed is not None and self.extension_count > self.max_extensions_allowed:
            raise ValidationError("Extension count cannot exceed the maximum allowed extensions")

    def save(self, *args, **kwargs):
        if not self.pk and self.current_price is None:
            self.current_price = self.starting_price

        if self.status != self.CANCELED:
            self.status = self.status_at(timezone.now())

        self.clean()
        super().save(*args, **kwargs)

    def status_at(self, now):
        """
        Status implied by the clock. Canceled auctions stay canceled.
        """
        if self.status == self.CANCELED:
            return self.CANCELED
        if now < self.start_time:
            return self.UPCOMING
        if now < self.end_time:
            return self.ACTIVE
        return self.ENDED

    @property
    def is_active(self):
        return self.status_at(timezone.now()) == self.ACTIVE

    @property
    def has_extension_policy(self):
        return (
            self.extension_time_left_minutes is not None
            and self.extension_duration_minutes is not None
            and self.max_extensions_allowed is not None
        )

    @property
    def extension_window(self):
        return timedelta(minutes=self.extension_time_left_minutes or 0)

    @property
    def extension_duration(self):
        return timedelta(minutes=self.extension_duration_minutes or 0)

    @property
    def minimum_increment(self):
        # Auto-bids step by one unit when the auction sets no minimum
        return self.bid_increment_minimum or 1

    @property
    def highest_bid(self):
        return self.bids.order_by('-amount', '-created_at').first()


class Bid(models.Model):
    auction = models.ForeignKey(Auction, on_delete=models.CASCADE, related_name='bids')
    bidder = models.ForeignKey(User, on_delete=models.CASCADE, related_name='bids')
    amount = models.DecimalField(max_digits=10, decimal_places=2)
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ['-amount']
        indexes = [
            models.Index(fields=['auction', 'amount'], name='bid_auction_amount_idx'),
            models.Index(fields=['auction', 'created_at'], name='bid_auction_created_idx'),
            models.Index(fields=['bidder'], name='bid_bidder_idx'),
        ]

    def __str__(self):
        return f"Bid of ${self.amount} by {self.bidder.username} on {self.auction.title}"


class AutoBid(models.Model):
    """
    A standing bid: a ceiling and a number of auctions the user wants to win.
    """
    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name='autobids')
    max_bid_amount = models.DecimalField(max_digits=10, decimal_places=2)
    target_auction_count = models.PositiveIntegerField()
    is_active = models.BooleanField(default=True)
    current_win_count = models.PositiveIntegerField(default=0)
    created_at = models.DateTimeField(default=timezone.now)
    last_processed_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        # Allocation priority: highest ceiling first, earliest created wins ties
        ordering = ['-max_bid_amount', 'created_at', 'id']
        indexes = [
            models.Index(fields=['user'], name='autobid_user_idx'),
            models.Index(fields=['is_active'], name='autobid_active_idx'),
        ]

    def __str__(self):
        return f"AutoBid by {self.user.username} up to ${self.max_bid_amount} for {self.target_auction_count} auctions"


class AutoBidClaim(models.Model):
    """
    The single slot an auto-bid holds on an auction. The one-to-one on
    auction is what guarantees at most one claim per auction.
    """
    autobid = models.ForeignKey(AutoBid, on_delete=models.CASCADE, related_name='claims')
    auction = models.OneToOneField(Auction, on_delete=models.CASCADE, related_name='claim')
    bid = models.ForeignKey(Bid, on_delete=models.SET_NULL, null=True, blank=True, related_name='+')
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        indexes = [
            models.Index(fields=['autobid'], name='claim_autobid_idx'),
        ]

    def __str__(self):
        return f"Claim on {self.auction_id} by autobid {self.autobid_id}"


class AuctionEvent(models.Model):
    BID = 'bid'
    EXTENSION = 'extension'

    EVENT_TYPE_CHOICES = (
        (BID, 'Bid'),
        (EXTENSION, 'Extension'),
    )

    auction = models.ForeignKey(Auction, on_delete=models.CASCADE, related_name='events')
    event_type = models.CharField(max_length=20, choices=EVENT_TYPE_CHOICES)
    timestamp = models.DateTimeField()
    message = models.CharField(max_length=255)
    bidder = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='+')
    amount = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    new_end_time = models.DateTimeField(null=True, blank=True)
    extension_count = models.PositiveIntegerField(null=True, blank=True)
    extension_minutes = models.PositiveIntegerField(null=True, blank=True)

    class Meta:
        ordering = ['timestamp', 'id']
        indexes = [
            models.Index(fields=['auction', 'timestamp'], name='event_auction_time_idx'),
        ]

    def __str__(self):
        return f"{self.event_type} on {self.auction_id} at {self.timestamp}"

    def as_payload(self):
        payload = {
            'event_type': self.event_type,
            'auction_id': self.auction_id,
            'timestamp': self.timestamp,
            'bidder_id': self.bidder_id,
            'amount': self.amount,
        }
        if self.event_type == self.EXTENSION:
            payload['new_end_time'] = self.new_end_time
            payload['extension_count'] = self.extension_count
        return payload


def default_coupon_quantity():
    return settings.BIDDING_DEFAULT_COUPON_QUANTITY


class CouponBundle(models.Model):
    auction = models.OneToOneField(Auction, on_delete=models.CASCADE, related_name='coupon_bundle')
    quantity = models.PositiveIntegerField(default=default_coupon_quantity)
    description = models.CharField(max_length=255)
    winner = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='coupon_bundles'
    )

    def __str__(self):
        return f"{self.quantity} coupons for {self.auction.title}"


class Coupon(models.Model):
    bundle = models.ForeignKey(CouponBundle, on_delete=models.CASCADE, related_name='coupons')
    owner = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='coupons')
    code = models.CharField(max_length=64, null=True, blank=True, unique=True)
    is_redeemed = models.BooleanField(default=False)
    redeemed_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='+')
    redeemed_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        indexes = [
            models.Index(fields=['owner'], name='coupon_owner_idx'),
        ]

    def __str__(self):
        return self.code or f"Coupon {self.pk} (unredeemed)"
