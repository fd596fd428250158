"""
Read-side accounting of what an auto-bid's claims are worth right now.

A claim is a *win* when its auction has ended on the claim's bid, and
*leading* when its auction is still running on the claim's bid. A claim
whose bid was overtaken counts as neither until the allocator prunes it.
"""
from collections import namedtuple

from django.utils import timezone

from .models import Auction, AutoBidClaim

WON = 'won'
LEADING = 'leading'

Tally = namedtuple('Tally', ['wins', 'leading'])


def claim_standing(claim, now=None):
    """
    Return WON, LEADING or None for a single claim.
    """
    if now is None:
        now = timezone.now()

    auction = claim.auction
    bid = claim.bid
    # A vanished or foreign bid counts for nothing
    if auction is None or bid is None or bid.auction_id != auction.pk:
        return None
    if bid.amount != auction.current_price:
        return None
    if auction.status == Auction.CANCELED:
        return None
    if now >= auction.end_time:
        return WON
    if auction.start_time <= now:
        return LEADING
    return None


def claims_for(autobid):
    return (
        AutoBidClaim.objects
        .filter(autobid=autobid)
        .select_related('auction', 'bid')
    )


def tally(autobid, now=None):
    """
    Count wins and leading positions in one pass over the claims.
    """
    if now is None:
        now = timezone.now()

    wins = leading = 0
    for claim in claims_for(autobid):
        standing = claim_standing(claim, now)
        if standing == WON:
            wins += 1
        elif standing == LEADING:
            leading += 1
    return Tally(wins=wins, leading=leading)


def count_wins(autobid, now=None):
    return tally(autobid, now).wins


def count_leading(autobid, now=None):
    return tally(autobid, now).leading


def is_stale(claim):
    """
    True when the claim no longer holds the auction's highest bid.
    """
    if claim.bid is None:
        return True
    return claim.bid.auction_id != claim.auction_id or claim.bid.amount != claim.auction.current_price
