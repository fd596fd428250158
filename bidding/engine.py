"""
Bid acceptance and the anti-sniping extension rule.

Every accepted bid goes through ``accept_bid`` while its auction row is
locked, whether it came from a bidder or from the auto-bid allocator, so
two writers can never both succeed against the same ``current_price``.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from django.db import transaction
from django.utils import timezone

from .exceptions import (
    NotFound,
    NotStarted,
    AuctionEnded,
    BelowStartingPrice,
    BelowMinIncrement,
    NotHighEnough,
)
from .models import Auction, AuctionEvent, Bid
from .scheduling import schedule_auction_end
from .signals import auction_event

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BidResult:
    bid: Bid
    was_extended: bool
    new_end_time: datetime
    extension_count: int

    @property
    def bid_id(self):
        return self.bid.pk


def place_bid(auction_id, bidder, amount):
    """
    Validate and commit a single bid as one transaction.

    Raises one of the ``BiddingError`` subclasses when the bid is refused;
    the caller decides whether to try again with another amount.
    """
    with transaction.atomic():
        try:
            auction = Auction.objects.select_for_update().get(pk=auction_id)
        except (Auction.DoesNotExist, ValueError):
            raise NotFound("Auction not found")
        return accept_bid(auction, bidder, amount)


def accept_bid(auction, bidder, amount, now=None):
    """
    Validate and commit a bid against an auction the caller has already
    locked with ``select_for_update()`` inside an atomic block.
    """
    amount = Decimal(str(amount))
    if now is None:
        now = timezone.now()

    validate_bid(auction, amount, now)

    new_end_time = auction.end_time
    extension_count = auction.extension_count
    was_extended = False

    if should_extend(auction, now):
        new_end_time = auction.end_time + auction.extension_duration
        extension_count += 1
        was_extended = True

    bid = Bid.objects.create(auction=auction, bidder=bidder, amount=amount, created_at=now)

    auction.current_price = amount
    auction.end_time = new_end_time
    auction.extension_count = extension_count
    auction.save(update_fields=['current_price', 'end_time', 'extension_count', 'updated_at'])

    events = [
        AuctionEvent.objects.create(
            auction=auction,
            event_type=AuctionEvent.BID,
            timestamp=now,
            message=f"New bid of {amount} by {bidder.username}",
            bidder=bidder,
            amount=amount,
        )
    ]

    if was_extended:
        minutes = auction.extension_duration_minutes
        events.append(AuctionEvent.objects.create(
            auction=auction,
            event_type=AuctionEvent.EXTENSION,
            timestamp=now,
            message=f"Auction extended by {minutes} minute{'s' if minutes != 1 else ''}!",
            bidder=bidder,
            amount=amount,
            new_end_time=new_end_time,
            extension_count=extension_count,
            extension_minutes=minutes,
        ))
        schedule_auction_end(auction.pk, new_end_time)
        logger.info(
            "Auction %s extended to %s (extension %s of %s)",
            auction.pk, new_end_time.isoformat(), extension_count, auction.max_extensions_allowed
        )

    for event in events:
        payload = event.as_payload()
        transaction.on_commit(lambda payload=payload: auction_event.send(sender=Auction, payload=payload))

    logger.debug("Accepted bid %s of %s on auction %s by user %s", bid.pk, amount, auction.pk, bidder.pk)

    return BidResult(
        bid=bid,
        was_extended=was_extended,
        new_end_time=new_end_time,
        extension_count=extension_count,
    )


def validate_bid(auction, amount, now):
    """
    Run the acceptance checks in order; the first failing one is raised.
    """
    if now < auction.start_time:
        raise NotStarted("This auction has not started yet")

    if now > auction.end_time or auction.status == Auction.CANCELED:
        raise AuctionEnded("This auction has ended")

    if amount < auction.starting_price:
        raise BelowStartingPrice(f"Bid must be at least the starting price of {auction.starting_price}")

    # A repeat of the current price is "not high enough" even when an
    # increment is configured; the increment only judges raises.
    if amount <= auction.current_price:
        raise NotHighEnough("Bid must be higher than current price")

    if auction.bid_increment_minimum is not None:
        minimum = auction.current_price + auction.bid_increment_minimum
        if amount < minimum:
            raise BelowMinIncrement(f"Bid must be at least {minimum}")


def should_extend(auction, now):
    if not auction.has_extension_policy:
        return False
    if auction.extension_count >= auction.max_extensions_allowed:
        return False
    return auction.end_time - now <= auction.extension_window
