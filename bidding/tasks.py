import logging

from celery import shared_task
from django.conf import settings
from django.core.cache import cache
from django.core.mail import send_mail

logger = logging.getLogger(__name__)

ALLOCATOR_LOCK_KEY = 'bidding:process-autobids:lock'


@shared_task
def process_ended_auction(auction_id):
    """
    End-of-auction job, scheduled at the auction's end time and again after
    every extension. Only the firing that finds the auction over finalizes it.
    """
    from .lifecycle import finalize_auction

    if finalize_auction(auction_id):
        return f"Finalized auction {auction_id}"
    return f"Nothing to do for auction {auction_id}"


@shared_task
def process_autobids():
    """
    Run one allocation pass over all active auto-bids.
    Overlapping runs are skipped rather than queued.
    """
    from .allocator import run_allocation

    if not cache.add(ALLOCATOR_LOCK_KEY, True, timeout=settings.BIDDING_ALLOCATOR_LOCK_TIMEOUT):
        logger.warning("Previous auto-bid allocation still running, skipping this tick")
        return "Skipped: allocation already running"

    try:
        report = run_allocation()
    finally:
        cache.delete(ALLOCATOR_LOCK_KEY)
    return str(report)


@shared_task
def update_auction_statuses():
    """
    Update auction statuses based on start_time and end_time, and finalize
    auctions whose end-of-auction job never ran.
    """
    from .lifecycle import sync_auction_statuses

    activated, finalized = sync_auction_statuses()
    return f"Updated {activated} upcoming auctions to active and finalized {finalized} ended auctions"


@shared_task
def send_winner_notification(auction_id, winner_id, final_price):
    """
    Email the winner of an auction.
    """
    from django.contrib.auth.models import User
    from .models import Auction

    auction = Auction.objects.select_related('coupon_bundle').filter(pk=auction_id).first()
    winner = User.objects.filter(pk=winner_id).first()
    if auction is None or winner is None or not winner.email:
        logger.warning("Cannot notify winner %s of auction %s", winner_id, auction_id)
        return False

    lines = [
        "Congratulations!",
        f"You are the winner of the auction: {auction.title}",
        f"Final price: ${final_price}",
    ]
    bundle = getattr(auction, 'coupon_bundle', None)
    if bundle is not None:
        lines.append(f"You have won {bundle.quantity} coupons! {bundle.description}")
        lines.append("Visit the My Coupons page to view and redeem your coupons.")
    lines.append("Thank you for participating in our auction platform!")

    send_mail(
        subject=f"Congratulations! You won the auction for {auction.title}",
        message="\n".join(lines),
        from_email=settings.DEFAULT_FROM_EMAIL,
        recipient_list=[winner.email],
    )
    logger.info("Sent winner notification for auction %s to user %s", auction_id, winner_id)
    return True
