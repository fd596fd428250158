import logging

from django.db import transaction

from .tasks import process_ended_auction

logger = logging.getLogger(__name__)


def schedule_auction_end(auction_id, end_time):
    """
    Enqueue end-of-auction processing for ``end_time`` once the current
    transaction commits.

    Jobs are never revoked. When an auction is extended a second job is
    scheduled for the new end time and the earlier one finds the auction
    still running and does nothing.
    """
    def enqueue():
        process_ended_auction.apply_async(args=[auction_id], eta=end_time)
        logger.info("Scheduled end-of-auction processing for auction %s at %s", auction_id, end_time.isoformat())

    transaction.on_commit(enqueue)
