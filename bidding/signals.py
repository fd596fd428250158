import logging

from django.dispatch import Signal, receiver

logger = logging.getLogger(__name__)

# Sent after commit for every accepted bid, and once more when the bid
# extended the auction. Receivers get ``payload`` as built by
# AuctionEvent.as_payload().
auction_event = Signal()

# Sent after commit when an auction is finalized. ``winner_id`` and
# ``final_price`` are None when nobody bid.
auction_finalized = Signal()


@receiver(auction_finalized)
def issue_coupons_to_winner(sender, auction_id, winner_id, final_price, **kwargs):
    """
    Hand the auction's coupon bundle to the winner.
    """
    if winner_id is None:
        return

    from .coupons import issue_coupons
    issue_coupons(auction_id, winner_id)


@receiver(auction_finalized)
def notify_winner(sender, auction_id, winner_id, final_price, **kwargs):
    """
    Queue the congratulation email for the winner.
    """
    if winner_id is None:
        return

    from .tasks import send_winner_notification
    send_winner_notification.delay(auction_id, winner_id, str(final_price))
    logger.info("Queued winner notification for auction %s (winner %s)", auction_id, winner_id)
