"""
Owner-facing management of standing auto-bids.

The allocator is the only writer of claims; this module creates,
deactivates and deletes the auto-bids themselves.
"""
import logging
from decimal import Decimal

from django.db import transaction
from django.db.models import Count, Sum

from .exceptions import BiddingError, NotFound, Unauthorized
from .models import AutoBid

logger = logging.getLogger(__name__)


@transaction.atomic
def create_autobid(user, max_bid_amount, target_auction_count):
    """
    Create the user's active auto-bid, deactivating any previous one.
    """
    max_bid_amount = Decimal(str(max_bid_amount))
    if max_bid_amount <= 0:
        raise BiddingError("Maximum bid amount must be greater than 0")
    if target_auction_count <= 0:
        raise BiddingError("Target auction count must be greater than 0")

    superseded = AutoBid.objects.select_for_update().filter(user=user, is_active=True)
    deactivated = superseded.update(is_active=False)
    if deactivated:
        logger.info("Deactivated %s previous auto-bid(s) for user %s", deactivated, user.pk)

    autobid = AutoBid.objects.create(
        user=user,
        max_bid_amount=max_bid_amount,
        target_auction_count=target_auction_count,
    )
    logger.info(
        "Created auto-bid %s for user %s: up to %s on %s auctions",
        autobid.pk, user.pk, max_bid_amount, target_auction_count
    )
    return autobid


def get_owned_autobid(autobid_id, user):
    autobid = AutoBid.objects.filter(pk=autobid_id).first()
    if autobid is None:
        raise NotFound("Auto-bid not found")
    if autobid.user_id != user.pk:
        raise Unauthorized("You can only manage your own auto-bids")
    return autobid


def deactivate_autobid(autobid_id, user):
    autobid = get_owned_autobid(autobid_id, user)
    AutoBid.objects.filter(pk=autobid.pk).update(is_active=False)
    autobid.is_active = False
    logger.info("Auto-bid %s deactivated by its owner", autobid.pk)
    return autobid


def delete_autobid(autobid_id, user):
    """
    Delete an auto-bid together with its claims.
    """
    autobid = get_owned_autobid(autobid_id, user)
    claims = autobid.claims.count()
    autobid.delete()
    logger.info("Deleted auto-bid %s and %s claim(s)", autobid_id, claims)


def delete_all_autobids(user):
    deleted = 0
    for autobid in AutoBid.objects.filter(user=user):
        autobid.delete()
        deleted += 1
    logger.info("Deleted %s auto-bid(s) for user %s", deleted, user.pk)
    return deleted


def autobid_orderbook():
    """
    Active auto-bids grouped by ceiling, highest ceiling first.
    """
    rows = (
        AutoBid.objects
        .filter(is_active=True)
        .values('max_bid_amount')
        .annotate(total_target_count=Sum('target_auction_count'), user_count=Count('id'))
        .order_by('-max_bid_amount')
    )
    return [
        {
            'max_bid_amount': row['max_bid_amount'],
            'total_target_count': row['total_target_count'],
            'user_count': row['user_count'],
        }
        for row in rows
    ]


def autobid_positions(autobid):
    """
    The auctions an auto-bid holds a claim on, with whether it is still on top.
    """
    positions = []
    for claim in autobid.claims.select_related('auction', 'bid'):
        if claim.bid is None:
            continue
        auction = claim.auction
        positions.append({
            'claim_id': claim.pk,
            'bid_id': claim.bid_id,
            'current_bid_amount': claim.bid.amount,
            'is_highest_bidder': claim.bid.amount == auction.current_price,
            'auction': {
                'id': auction.pk,
                'title': auction.title,
                'current_price': auction.current_price,
                'status': auction.status,
                'end_time': auction.end_time,
            },
        })
    return positions
