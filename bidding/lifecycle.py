import logging
from datetime import timedelta

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from .exceptions import AuctionEnded, BiddingError, NotFound, Unauthorized
from .models import Auction, CouponBundle
from .scheduling import schedule_auction_end
from .signals import auction_finalized

logger = logging.getLogger(__name__)

DEFAULT_COUPON_DESCRIPTION = "Bundle of 10 coupons for the winning bidder"


@transaction.atomic
def create_auctions(creator, title, description, starting_price, start_time, end_time,
                    number_of_auctions=1, duration_in_minutes=None, separation_time_in_minutes=None,
                    coupon_description=None, **options):
    """
    Create one auction, or a series of ``number_of_auctions`` auctions.

    Series members are titled "<title> #n". Each lasts ``duration_in_minutes``
    (or ``end_time - start_time``) and starts ``separation_time_in_minutes``
    after the previous one. ``options`` carries the remaining Auction
    fields (increment, extension policy, image).

    Every auction gets a coupon bundle and an end-of-auction job.
    """
    count = number_of_auctions or 1
    if duration_in_minutes:
        duration = timedelta(minutes=duration_in_minutes)
    else:
        duration = end_time - start_time
    separation = timedelta(minutes=separation_time_in_minutes or 0)

    auctions = []
    current_start = start_time
    for index in range(count):
        auction = Auction.objects.create(
            creator=creator,
            title=title if count == 1 else f"{title} #{index + 1}",
            description=description,
            starting_price=starting_price,
            current_price=starting_price,
            start_time=current_start,
            end_time=end_time if count == 1 else current_start + duration,
            duration_in_minutes=duration_in_minutes,
            separation_time_in_minutes=separation_time_in_minutes,
            **options
        )
        CouponBundle.objects.create(
            auction=auction,
            quantity=settings.BIDDING_DEFAULT_COUPON_QUANTITY,
            description=coupon_description or DEFAULT_COUPON_DESCRIPTION,
        )

        if auction.end_time > timezone.now():
            schedule_auction_end(auction.pk, auction.end_time)

        auctions.append(auction)
        current_start = current_start + separation

    logger.info("User %s created %s auction(s) starting %s", creator.pk, len(auctions), start_time.isoformat())
    return auctions


def finalize_auction(auction_id):
    """
    Close an auction whose end time has passed and record its winner.

    Safe to call any number of times: a missing, canceled or already
    finalized auction is left alone, and so is one that was extended past
    the time this call was scheduled for. Returns True only for the call
    that actually finalized the auction.
    """
    with transaction.atomic():
        auction = Auction.objects.select_for_update().filter(pk=auction_id).first()
        if auction is None:
            logger.error("Auction %s not found", auction_id)
            return False

        if auction.is_finalized or auction.status == Auction.CANCELED:
            logger.info("Auction %s has already been processed", auction_id)
            return False

        now = timezone.now()
        if now < auction.end_time:
            logger.info("Auction %s has not ended yet (ends %s)", auction_id, auction.end_time.isoformat())
            return False

        highest_bid = auction.highest_bid
        auction.status = Auction.ENDED
        auction.winner = highest_bid.bidder if highest_bid else None
        auction.is_finalized = True
        auction.save(update_fields=['status', 'winner', 'is_finalized', 'updated_at'])

        winner_id = highest_bid.bidder_id if highest_bid else None
        final_price = highest_bid.amount if highest_bid else None
        transaction.on_commit(lambda: auction_finalized.send(
            sender=Auction,
            auction_id=auction_id,
            winner_id=winner_id,
            final_price=final_price,
        ))

    if winner_id is None:
        logger.info("Auction %s ended without bids", auction_id)
    else:
        logger.info("Auction %s won by user %s at %s", auction_id, winner_id, final_price)
    return True


def sync_auction_statuses():
    """
    Bring persisted statuses in line with the clock.

    Upcoming auctions that have started become active; auctions past their
    end time that were never finalized (a lost end-of-auction job) are
    finalized now.
    """
    now = timezone.now()

    activated = Auction.objects.filter(
        status=Auction.UPCOMING,
        start_time__lte=now,
        end_time__gt=now
    ).update(status=Auction.ACTIVE, updated_at=now)

    overdue = Auction.objects.filter(
        is_finalized=False,
        end_time__lte=now
    ).exclude(status=Auction.CANCELED).values_list('pk', flat=True)

    finalized = 0
    for auction_id in list(overdue):
        if finalize_auction(auction_id):
            finalized += 1

    return activated, finalized


def cancel_auction(auction_id, user):
    """
    Cancel an auction before anyone has bid on it. Only the creator or
    staff may cancel.
    """
    with transaction.atomic():
        auction = Auction.objects.select_for_update().filter(pk=auction_id).first()
        if auction is None:
            raise NotFound("Auction not found")
        if auction.creator_id != user.pk and not user.is_staff:
            raise Unauthorized("You can only cancel your own auctions")
        if auction.is_finalized or timezone.now() >= auction.end_time:
            raise AuctionEnded("This auction has ended")
        if auction.bids.exists():
            raise BiddingError("Cannot cancel an auction with existing bids")

        auction.status = Auction.CANCELED
        auction.save(update_fields=['status', 'updated_at'])

    logger.info("Auction %s canceled by user %s", auction_id, user.pk)
    return auction
