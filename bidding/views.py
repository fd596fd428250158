from rest_framework import viewsets, mixins, permissions, status, filters
from rest_framework.decorators import action
from rest_framework.response import Response
from django.utils.dateparse import parse_datetime
from drf_yasg.utils import swagger_auto_schema

from .models import Auction, AuctionEvent, AutoBid, Bid
from .serializers import (
    AuctionListSerializer,
    AuctionDetailSerializer,
    AuctionCreateSerializer,
    AuctionEventSerializer,
    AutoBidSerializer,
    BidSerializer,
    BidResultSerializer,
    CouponSerializer,
    OrderbookEntrySerializer,
    PlaceBidSerializer,
)
from .permissions import IsOwnerOrAdmin
from . import autobids as autobid_service
from .coupons import coupons_for, redeem_coupon
from . import engine
from .lifecycle import cancel_auction, create_auctions

DEFAULT_EVENT_LIMIT = 10


class AuctionViewSet(mixins.ListModelMixin,
                     mixins.RetrieveModelMixin,
                     viewsets.GenericViewSet):
    """
    API endpoint for auctions.
    """
    queryset = Auction.objects.all()
    permission_classes = [permissions.IsAuthenticated]
    filter_backends = [filters.SearchFilter, filters.OrderingFilter]
    search_fields = ['title', 'description']
    ordering_fields = ['created_at', 'start_time', 'end_time', 'current_price']
    ordering = ['-created_at']

    def get_serializer_class(self):
        if self.action == 'create':
            return AuctionCreateSerializer
        elif self.action == 'retrieve':
            return AuctionDetailSerializer
        elif self.action == 'bids':
            return BidSerializer
        elif self.action == 'place_bid':
            return PlaceBidSerializer
        elif self.action in ['events', 'extensions']:
            return AuctionEventSerializer
        return AuctionListSerializer

    def get_queryset(self):
        """
        Filter auctions based on query parameters:
        - status: Filter by auction status (upcoming, active, ended, canceled)
        - creator: Filter by auction creator
        - my: Filter to only show user's auctions (if true)
        - won: Filter to only show auctions won by user (if true)
        """
        queryset = Auction.objects.select_related('creator', 'winner')

        status_filter = self.request.query_params.get('status')
        creator_id = self.request.query_params.get('creator')
        my_auctions = self.request.query_params.get('my')
        won_auctions = self.request.query_params.get('won')

        if status_filter:
            queryset = queryset.filter(status=status_filter)

        if creator_id:
            queryset = queryset.filter(creator_id=creator_id)

        if my_auctions and my_auctions.lower() == 'true':
            queryset = queryset.filter(creator=self.request.user)

        if won_auctions and won_auctions.lower() == 'true':
            queryset = queryset.filter(winner=self.request.user)

        return queryset

    def create(self, request, *args, **kwargs):
        """
        Create one auction, or a series when number_of_auctions > 1.
        """
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        auctions = create_auctions(creator=request.user, **serializer.validated_data)
        data = AuctionListSerializer(auctions, many=True).data
        if len(auctions) == 1:
            data = data[0]
        return Response(data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=['get'])
    def bids(self, request, pk=None):
        """
        Get all bids for a specific auction, latest first.
        """
        auction = self.get_object()
        bids = auction.bids.select_related('bidder').order_by('-created_at', '-amount')
        serializer = BidSerializer(bids, many=True)
        return Response(serializer.data)

    @swagger_auto_schema(
        request_body=PlaceBidSerializer,
        responses={
            201: BidResultSerializer,
            400: 'Bad Request - Bid refused (not started, ended, too low)',
            404: 'Not Found - Auction does not exist'
        },
        operation_description="Place a bid; may extend the auction when placed near its end"
    )
    @action(detail=True, methods=['post'])
    def place_bid(self, request, pk=None):
        """
        Place a bid on a specific auction.
        """
        serializer = PlaceBidSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        result = engine.place_bid(pk, request.user, serializer.validated_data['amount'])
        return Response(BidResultSerializer(result).data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=['get'])
    def events(self, request, pk=None):
        """
        Auction events in acceptance order. With ?after=<timestamp> only
        newer events are returned; otherwise the most recent ?limit (10).
        """
        auction = self.get_object()
        events = AuctionEvent.objects.filter(auction=auction)

        after = request.query_params.get('after')
        if after:
            after_time = parse_datetime(after)
            if after_time is None:
                return Response({"detail": "Invalid 'after' timestamp"}, status=status.HTTP_400_BAD_REQUEST)
            events = events.filter(timestamp__gt=after_time).order_by('timestamp', 'id')
        else:
            events = events.order_by('-timestamp', '-id')[:self.get_limit(request)]

        return Response(AuctionEventSerializer(events, many=True).data)

    @action(detail=True, methods=['get'])
    def extensions(self, request, pk=None):
        """
        Most recent extension events for an auction.
        """
        auction = self.get_object()
        events = (
            AuctionEvent.objects
            .filter(auction=auction, event_type=AuctionEvent.EXTENSION)
            .order_by('-timestamp', '-id')[:self.get_limit(request)]
        )
        return Response(AuctionEventSerializer(events, many=True).data)

    @action(detail=True, methods=['post'])
    def cancel(self, request, pk=None):
        auction = cancel_auction(pk, request.user)
        return Response(AuctionDetailSerializer(auction).data)

    def get_limit(self, request):
        try:
            return max(1, int(request.query_params.get('limit', DEFAULT_EVENT_LIMIT)))
        except ValueError:
            return DEFAULT_EVENT_LIMIT


class BidViewSet(viewsets.ReadOnlyModelViewSet):
    """
    API endpoint for bids.
    Users can only view their own bids unless they're an admin.
    Bids are placed through the auction's place_bid action.
    """
    serializer_class = BidSerializer
    permission_classes = [permissions.IsAuthenticated]

    def get_queryset(self):
        """
        Filter bids based on query parameters and user:
        - auction: Filter by auction ID
        - Non-admin users can only see their own bids
        """
        user = self.request.user
        queryset = Bid.objects.select_related('bidder')

        auction_id = self.request.query_params.get('auction')
        if auction_id:
            queryset = queryset.filter(auction_id=auction_id)

        if not user.is_staff:
            queryset = queryset.filter(bidder=user)

        return queryset


class AutoBidViewSet(mixins.ListModelMixin,
                     mixins.RetrieveModelMixin,
                     viewsets.GenericViewSet):
    """
    API endpoint for standing auto-bids.
    """
    serializer_class = AutoBidSerializer
    permission_classes = [permissions.IsAuthenticated, IsOwnerOrAdmin]

    def get_queryset(self):
        if self.request.user.is_staff:
            return AutoBid.objects.all()
        return AutoBid.objects.filter(user=self.request.user)

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        autobid = autobid_service.create_autobid(
            request.user,
            serializer.validated_data['max_bid_amount'],
            serializer.validated_data['target_auction_count'],
        )
        return Response(AutoBidSerializer(autobid).data, status=status.HTTP_201_CREATED)

    def destroy(self, request, pk=None):
        autobid_service.delete_autobid(pk, request.user)
        return Response(status=status.HTTP_204_NO_CONTENT)

    @action(detail=True, methods=['post'])
    def deactivate(self, request, pk=None):
        autobid = autobid_service.deactivate_autobid(pk, request.user)
        return Response(AutoBidSerializer(autobid).data)

    @action(detail=True, methods=['get'])
    def positions(self, request, pk=None):
        """
        Auctions this auto-bid holds, and whether it is still the highest bidder.
        """
        autobid = self.get_object()
        return Response(autobid_service.autobid_positions(autobid))

    @swagger_auto_schema(responses={200: OrderbookEntrySerializer(many=True)})
    @action(detail=False, methods=['get'])
    def orderbook(self, request):
        """
        Active auto-bids grouped by maximum bid amount.
        """
        entries = autobid_service.autobid_orderbook()
        return Response(OrderbookEntrySerializer(entries, many=True).data)

    @action(detail=False, methods=['post'])
    def delete_all(self, request):
        count = autobid_service.delete_all_autobids(request.user)
        return Response({"message": f"Successfully deleted {count} auto-bids", "count": count})


class CouponViewSet(viewsets.ReadOnlyModelViewSet):
    """
    API endpoint for the coupons a user has won.
    """
    serializer_class = CouponSerializer
    permission_classes = [permissions.IsAuthenticated]

    def get_queryset(self):
        return coupons_for(self.request.user)

    @action(detail=True, methods=['post'])
    def redeem(self, request, pk=None):
        coupon = redeem_coupon(pk, request.user)
        return Response(CouponSerializer(coupon).data)
