from django.contrib import admin
from .models import Auction, AuctionEvent, AutoBid, AutoBidClaim, Bid, Coupon, CouponBundle


class BidInline(admin.TabularInline):
    model = Bid
    fields = ('bidder', 'amount', 'created_at')
    readonly_fields = ('bidder', 'amount', 'created_at')
    extra = 0
    can_delete = False
    ordering = ('-amount',)


class AuctionEventInline(admin.TabularInline):
    model = AuctionEvent
    fields = ('event_type', 'timestamp', 'bidder', 'amount', 'new_end_time', 'extension_count')
    readonly_fields = fields
    extra = 0
    can_delete = False


@admin.register(Auction)
class AuctionAdmin(admin.ModelAdmin):
    list_display = ('title', 'creator', 'starting_price', 'current_price', 'status', 'start_time', 'end_time', 'extension_count', 'winner')
    list_filter = ('status', 'is_finalized', 'created_at', 'start_time', 'end_time')
    search_fields = ('title', 'description', 'creator__username')
    readonly_fields = ('current_price', 'extension_count', 'winner', 'is_finalized', 'created_at', 'updated_at')
    date_hierarchy = 'created_at'
    inlines = [BidInline, AuctionEventInline]

    fieldsets = (
        ('Basic Information', {
            'fields': ('title', 'description', 'image_url', 'creator')
        }),
        ('Pricing', {
            'fields': ('starting_price', 'current_price', 'bid_increment_minimum')
        }),
        ('Auction Timing', {
            'fields': ('start_time', 'end_time', 'status')
        }),
        ('Extensions', {
            'fields': ('extension_time_left_minutes', 'extension_duration_minutes', 'max_extensions_allowed', 'extension_count')
        }),
        ('Results', {
            'fields': ('winner', 'is_finalized')
        }),
        ('Metadata', {
            'fields': ('created_at', 'updated_at'),
            'classes': ('collapse',)
        }),
    )

    def has_change_permission(self, request, obj=None):
        # Prices and end times only move through the bidding engine once bidding started
        if obj and (obj.is_finalized or obj.bids.exists()):
            return False
        return super().has_change_permission(request, obj)


@admin.register(Bid)
class BidAdmin(admin.ModelAdmin):
    list_display = ('id', 'auction', 'bidder', 'amount', 'created_at')
    list_filter = ('created_at', 'auction')
    search_fields = ('auction__title', 'bidder__username')
    readonly_fields = ('created_at',)
    date_hierarchy = 'created_at'

    def has_change_permission(self, request, obj=None):
        # Bids cannot be edited after creation
        return False

    def has_delete_permission(self, request, obj=None):
        return False


class AutoBidClaimInline(admin.TabularInline):
    model = AutoBidClaim
    fields = ('auction', 'bid', 'created_at')
    readonly_fields = fields
    extra = 0
    can_delete = False


@admin.register(AutoBid)
class AutoBidAdmin(admin.ModelAdmin):
    list_display = ('id', 'user', 'max_bid_amount', 'target_auction_count', 'current_win_count', 'is_active', 'created_at')
    list_filter = ('is_active',)
    search_fields = ('user__username',)
    readonly_fields = ('current_win_count', 'created_at', 'last_processed_at')
    inlines = [AutoBidClaimInline]


@admin.register(CouponBundle)
class CouponBundleAdmin(admin.ModelAdmin):
    list_display = ('auction', 'quantity', 'winner')
    search_fields = ('auction__title', 'winner__username')


@admin.register(Coupon)
class CouponAdmin(admin.ModelAdmin):
    list_display = ('id', 'bundle', 'owner', 'code', 'is_redeemed', 'redeemed_at')
    list_filter = ('is_redeemed',)
    readonly_fields = ('code', 'redeemed_by', 'redeemed_at')
