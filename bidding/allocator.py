"""
Periodic allocation of standing auto-bids across running auctions.

Auto-bids are served in priority order (highest ceiling first, earliest
created on ties). Each one is topped up to its target count by claiming
auctions in descending price order, bidding one increment above the next
best competitor without going over its own ceiling. Every claim or
eviction is committed together with its bid under the auction's row lock,
and the whole pass can be re-run at any time: it re-derives what each
auto-bid still needs from the database.
"""
import logging
from dataclasses import dataclass

from django.db import IntegrityError, transaction
from django.utils import timezone

from . import accounting
from .engine import accept_bid
from .exceptions import BiddingError
from .models import Auction, AutoBid, AutoBidClaim

logger = logging.getLogger(__name__)

CLAIMED = 'claimed'
EVICTED = 'evicted'
SKIPPED = 'skipped'
UNAFFORDABLE = 'unaffordable'


@dataclass
class AllocationReport:
    autobids: int = 0
    auctions: int = 0
    pruned: int = 0
    claimed: int = 0
    evicted: int = 0
    skipped: int = 0
    failed: int = 0
    win_counts_updated: int = 0

    @property
    def mutations(self):
        return self.pruned + self.claimed + self.evicted + self.win_counts_updated

    def __str__(self):
        return (
            f"Processed {self.autobids} auto-bids over {self.auctions} auctions: "
            f"{self.claimed} claimed, {self.evicted} evicted, {self.pruned} pruned, "
            f"{self.failed} failed"
        )


class AutoBidAllocator:

    def __init__(self, now=None):
        self.now = now

    def run(self):
        now = self.now or timezone.now()
        report = AllocationReport()

        self.prune_stale_claims(report)

        autobids = list(self.active_autobids())
        auctions = list(self.active_auctions(now))
        report.autobids = len(autobids)
        report.auctions = len(auctions)
        logger.info("Allocating %s active auto-bids over %s active auctions", len(autobids), len(auctions))

        for index, autobid in enumerate(autobids):
            next_autobid = autobids[index + 1] if index + 1 < len(autobids) else None
            self.process_autobid(autobid, next_autobid, auctions, now, report)

        logger.info("%s", report)
        return report

    def active_autobids(self):
        return (
            AutoBid.objects
            .filter(is_active=True)
            .select_related('user')
            .order_by('-max_bid_amount', 'created_at', 'id')
        )

    def active_auctions(self, now):
        # Ordered once per pass; each claim attempt re-reads the locked row
        return (
            Auction.objects
            .filter(start_time__lte=now, end_time__gt=now, is_finalized=False)
            .exclude(status=Auction.CANCELED)
            .order_by('-current_price', 'id')
        )

    def prune_stale_claims(self, report):
        """
        Drop claims on unfinalized auctions whose bid was overtaken.
        """
        candidates = (
            AutoBidClaim.objects
            .filter(auction__is_finalized=False)
            .select_related('auction', 'bid')
        )
        stale = [(claim.pk, claim.auction_id) for claim in candidates if accounting.is_stale(claim)]

        for claim_id, auction_id in stale:
            with transaction.atomic():
                # Same lock a bid on this auction takes
                Auction.objects.select_for_update().filter(pk=auction_id).first()
                claim = AutoBidClaim.objects.select_related('auction', 'bid').filter(pk=claim_id).first()
                if claim is None or not accounting.is_stale(claim):
                    continue
                claim.delete()
            report.pruned += 1
            logger.info("Pruned stale claim %s on auction %s", claim_id, auction_id)

    def process_autobid(self, autobid, next_autobid, auctions, now, report):
        tally = accounting.tally(autobid, now)

        if tally.wins != autobid.current_win_count:
            AutoBid.objects.filter(pk=autobid.pk).update(current_win_count=tally.wins)
            autobid.current_win_count = tally.wins
            report.win_counts_updated += 1

        additional_needed = max(0, autobid.target_auction_count - (tally.wins + tally.leading))
        logger.debug(
            "Auto-bid %s (max %s): %s won, %s leading, %s more needed",
            autobid.pk, autobid.max_bid_amount, tally.wins, tally.leading, additional_needed
        )
        if additional_needed == 0:
            return

        claimed = 0
        for auction in auctions:
            if claimed >= additional_needed:
                break

            try:
                outcome = self.try_claim(autobid, next_autobid, auction.pk)
            except (BiddingError, IntegrityError) as exc:
                report.failed += 1
                logger.warning(
                    "Auto-bid %s could not bid on auction %s: %s", autobid.pk, auction.pk, exc
                )
                continue

            if outcome in (CLAIMED, EVICTED):
                claimed += 1
                if outcome == CLAIMED:
                    report.claimed += 1
                else:
                    report.evicted += 1
            else:
                report.skipped += 1

        if claimed:
            AutoBid.objects.filter(pk=autobid.pk).update(last_processed_at=now)
            logger.info("Auto-bid %s claimed %s new auctions", autobid.pk, claimed)

    def try_claim(self, autobid, next_autobid, auction_id):
        """
        Bid for ``auction_id`` on behalf of ``autobid`` and take its claim,
        as one transaction under the auction's row lock.

        The clock is read again once the lock is held: the pass may have
        started before this auction ended or was finalized.
        """
        with transaction.atomic():
            auction = Auction.objects.select_for_update().filter(pk=auction_id).first()
            if auction is None or auction.is_finalized:
                return SKIPPED

            now = timezone.now()
            if auction.status_at(now) != Auction.ACTIVE:
                return SKIPPED

            offer = self.offer_for(autobid, next_autobid, auction)
            if offer is None:
                logger.debug(
                    "Auction %s at %s is out of reach for auto-bid %s (max %s)",
                    auction.pk, auction.current_price, autobid.pk, autobid.max_bid_amount
                )
                return UNAFFORDABLE

            claim = AutoBidClaim.objects.select_related('autobid', 'bid').filter(auction=auction).first()
            if claim is not None and accounting.is_stale(claim):
                claim.delete()
                claim = None

            if claim is not None:
                holder = claim.autobid
                if holder.pk == autobid.pk:
                    return SKIPPED
                # Deactivating an auto-bid does not give up the auctions it holds
                if holder.max_bid_amount >= autobid.max_bid_amount:
                    return SKIPPED

            result = accept_bid(auction, autobid.user, offer, now=now)

            outcome = CLAIMED
            if claim is not None:
                claim.delete()
                outcome = EVICTED
                logger.info(
                    "Auto-bid %s evicted auto-bid %s from auction %s at %s",
                    autobid.pk, claim.autobid_id, auction.pk, offer
                )

            AutoBidClaim.objects.create(autobid=autobid, auction=auction, bid=result.bid)
            logger.info("Auto-bid %s claimed auction %s at %s", autobid.pk, auction.pk, offer)
            return outcome

    def offer_for(self, autobid, next_autobid, auction):
        """
        One increment above the next best competitor, capped at the
        auto-bid's ceiling. None when that cannot beat the current price.
        Capping rather than skipping keeps the earlier of two equal
        ceilings on top: it bids the ceiling and the later one cannot beat it.
        """
        increment = auction.minimum_increment
        if next_autobid is not None:
            offer = max(next_autobid.max_bid_amount, auction.current_price) + increment
        else:
            offer = auction.current_price + increment

        offer = min(offer, autobid.max_bid_amount)

        if offer <= auction.current_price:
            return None
        if auction.bid_increment_minimum is not None and offer < auction.current_price + auction.bid_increment_minimum:
            return None
        return offer


def run_allocation(now=None):
    return AutoBidAllocator(now=now).run()
