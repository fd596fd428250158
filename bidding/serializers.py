from rest_framework import serializers
from django.utils import timezone

from .models import Auction, AuctionEvent, AutoBid, Bid, Coupon


def format_time_left(auction):
    if auction.status == Auction.CANCELED:
        return "Auction canceled"

    now = timezone.now()
    if now < auction.start_time:
        return "Auction not started yet"
    if now >= auction.end_time:
        return "Auction ended"

    time_left = auction.end_time - now
    days = time_left.days
    hours, remainder = divmod(time_left.seconds, 3600)
    minutes, seconds = divmod(remainder, 60)

    if days > 0:
        return f"{days}d {hours}h {minutes}m"
    elif hours > 0:
        return f"{hours}h {minutes}m {seconds}s"
    else:
        return f"{minutes}m {seconds}s"


class BidSerializer(serializers.ModelSerializer):
    bidder_username = serializers.ReadOnlyField(source='bidder.username')

    class Meta:
        model = Bid
        fields = ['id', 'auction', 'bidder', 'bidder_username', 'amount', 'created_at']
        read_only_fields = fields


class PlaceBidSerializer(serializers.Serializer):
    amount = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=0)


class BidResultSerializer(serializers.Serializer):
    bid_id = serializers.IntegerField()
    was_extended = serializers.BooleanField()
    new_end_time = serializers.DateTimeField()
    extension_count = serializers.IntegerField()


class AuctionListSerializer(serializers.ModelSerializer):
    creator_username = serializers.ReadOnlyField(source='creator.username')
    bid_count = serializers.SerializerMethodField()
    time_left = serializers.SerializerMethodField()

    class Meta:
        model = Auction
        fields = [
            'id', 'title', 'image_url', 'starting_price', 'current_price', 'bid_increment_minimum',
            'creator_username', 'start_time', 'end_time', 'status', 'extension_count',
            'bid_count', 'time_left'
        ]
        read_only_fields = fields

    def get_bid_count(self, obj):
        return obj.bids.count()

    def get_time_left(self, obj):
        return format_time_left(obj)


class AuctionDetailSerializer(serializers.ModelSerializer):
    creator_username = serializers.ReadOnlyField(source='creator.username')
    bids = BidSerializer(many=True, read_only=True)
    bid_count = serializers.SerializerMethodField()
    time_left = serializers.SerializerMethodField()
    winner_username = serializers.ReadOnlyField(source='winner.username', allow_null=True)

    class Meta:
        model = Auction
        fields = [
            'id', 'title', 'description', 'image_url', 'starting_price', 'current_price',
            'bid_increment_minimum', 'creator', 'creator_username', 'start_time', 'end_time',
            'status', 'extension_time_left_minutes', 'extension_duration_minutes',
            'max_extensions_allowed', 'extension_count', 'created_at', 'updated_at',
            'bids', 'bid_count', 'time_left', 'winner', 'winner_username', 'is_finalized'
        ]
        read_only_fields = fields

    def get_bid_count(self, obj):
        return obj.bids.count()

    def get_time_left(self, obj):
        return format_time_left(obj)


class AuctionCreateSerializer(serializers.Serializer):
    title = serializers.CharField(max_length=200)
    description = serializers.CharField(allow_blank=True)
    image_url = serializers.URLField(required=False, allow_null=True)
    starting_price = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=0)
    start_time = serializers.DateTimeField()
    end_time = serializers.DateTimeField()
    bid_increment_minimum = serializers.DecimalField(
        max_digits=10, decimal_places=2, required=False, allow_null=True, min_value=0
    )
    number_of_auctions = serializers.IntegerField(required=False, min_value=1, default=1)
    duration_in_minutes = serializers.IntegerField(required=False, allow_null=True, min_value=1)
    separation_time_in_minutes = serializers.IntegerField(required=False, allow_null=True, min_value=0)
    coupon_description = serializers.CharField(required=False, allow_blank=True, max_length=255)
    extension_time_left_minutes = serializers.IntegerField(required=False, allow_null=True, min_value=0)
    extension_duration_minutes = serializers.IntegerField(required=False, allow_null=True, min_value=1)
    max_extensions_allowed = serializers.IntegerField(required=False, allow_null=True, min_value=0)

    EXTENSION_FIELDS = ('extension_time_left_minutes', 'extension_duration_minutes', 'max_extensions_allowed')

    def validate(self, data):
        if data['end_time'] <= data['start_time']:
            raise serializers.ValidationError("End time must be after start time")

        # The extension policy is all-or-nothing
        provided = [name for name in self.EXTENSION_FIELDS if data.get(name) is not None]
        if provided and len(provided) != len(self.EXTENSION_FIELDS):
            raise serializers.ValidationError(
                "extension_time_left_minutes, extension_duration_minutes and "
                "max_extensions_allowed must be provided together"
            )

        return data


class AutoBidSerializer(serializers.ModelSerializer):
    class Meta:
        model = AutoBid
        fields = [
            'id', 'user', 'max_bid_amount', 'target_auction_count', 'is_active',
            'current_win_count', 'created_at', 'last_processed_at'
        ]
        read_only_fields = ['id', 'user', 'is_active', 'current_win_count', 'created_at', 'last_processed_at']

    def validate_max_bid_amount(self, value):
        if value <= 0:
            raise serializers.ValidationError("Maximum bid amount must be greater than 0")
        return value

    def validate_target_auction_count(self, value):
        if value <= 0:
            raise serializers.ValidationError("Target auction count must be greater than 0")
        return value


class OrderbookEntrySerializer(serializers.Serializer):
    max_bid_amount = serializers.DecimalField(max_digits=10, decimal_places=2)
    total_target_count = serializers.IntegerField()
    user_count = serializers.IntegerField()


class AuctionEventSerializer(serializers.ModelSerializer):
    class Meta:
        model = AuctionEvent
        fields = [
            'id', 'auction', 'event_type', 'timestamp', 'message', 'bidder', 'amount',
            'new_end_time', 'extension_count', 'extension_minutes'
        ]
        read_only_fields = fields


class CouponSerializer(serializers.ModelSerializer):
    auction = serializers.ReadOnlyField(source='bundle.auction_id')
    bundle_description = serializers.ReadOnlyField(source='bundle.description')

    class Meta:
        model = Coupon
        fields = ['id', 'bundle', 'bundle_description', 'auction', 'owner', 'code', 'is_redeemed', 'redeemed_at']
        read_only_fields = fields
