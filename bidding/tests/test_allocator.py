from datetime import timedelta
from decimal import Decimal
from unittest.mock import patch

from django.db import IntegrityError, transaction
from django.test import TestCase
from django.utils import timezone

from bidding.allocator import SKIPPED, AutoBidAllocator, run_allocation
from bidding.engine import accept_bid, place_bid
from bidding.exceptions import NotHighEnough
from bidding.lifecycle import finalize_auction
from bidding.models import Auction, AutoBid, AutoBidClaim, Bid
from bidding.tests.factories import (
    AuctionFactory,
    AutoBidFactory,
    UserFactory,
    leading_claim,
)


class PriorityTest(TestCase):
    def setUp(self):
        self.now = timezone.now()
        self.auction = AuctionFactory(
            starting_price=Decimal('40.00'),
            bid_increment_minimum=Decimal('1.00'),
        )
        self.high = AutoBidFactory(max_bid_amount=Decimal('100.00'), created_at=self.now - timedelta(minutes=5))
        self.low = AutoBidFactory(max_bid_amount=Decimal('50.00'), created_at=self.now - timedelta(minutes=10))

    def test_higher_ceiling_claims_one_above_competitor(self):
        report = run_allocation()

        claim = AutoBidClaim.objects.get(auction=self.auction)
        self.assertEqual(claim.autobid, self.high)
        self.assertEqual(claim.bid.amount, Decimal('51.00'))
        self.assertEqual(claim.bid.bidder, self.high.user)
        self.assertEqual(report.claimed, 1)

        self.auction.refresh_from_db()
        self.assertEqual(self.auction.current_price, Decimal('51.00'))

    def test_lower_ceiling_never_bids_above_its_max(self):
        run_allocation()
        run_allocation()

        self.assertFalse(Bid.objects.filter(bidder=self.low.user, amount__gt=Decimal('50.00')).exists())
        self.assertFalse(Bid.objects.filter(bidder=self.low.user).exists())

    def test_second_pass_changes_nothing(self):
        first = run_allocation()
        self.assertGreater(first.mutations, 0)

        bids_before = Bid.objects.count()
        second = run_allocation()

        self.assertEqual(second.mutations, 0)
        self.assertEqual(Bid.objects.count(), bids_before)
        self.assertEqual(AutoBidClaim.objects.count(), 1)

    def test_priority_order(self):
        allocator = AutoBidAllocator()
        self.assertEqual(list(allocator.active_autobids()), [self.high, self.low])


class EqualCeilingTest(TestCase):
    def test_earliest_created_wins_ties(self):
        now = timezone.now()
        auction = AuctionFactory(starting_price=Decimal('40.00'))
        first = AutoBidFactory(max_bid_amount=Decimal('50.00'), created_at=now - timedelta(minutes=10))
        AutoBidFactory(max_bid_amount=Decimal('50.00'), created_at=now - timedelta(minutes=5))

        run_allocation()

        claim = AutoBidClaim.objects.get(auction=auction)
        self.assertEqual(claim.autobid, first)
        self.assertEqual(claim.bid.amount, Decimal('50.00'))


class BudgetCeilingTest(TestCase):
    def test_out_of_reach_auction_is_left_alone(self):
        autobid = AutoBidFactory(max_bid_amount=Decimal('50.00'), target_auction_count=3)
        cheap = AuctionFactory(starting_price=Decimal('40.00'))
        dear = AuctionFactory(starting_price=Decimal('60.00'))

        run_allocation()

        self.assertTrue(AutoBidClaim.objects.filter(autobid=autobid, auction=cheap).exists())
        self.assertFalse(AutoBidClaim.objects.filter(auction=dear).exists())
        self.assertFalse(Bid.objects.filter(bidder=autobid.user, amount__gt=autobid.max_bid_amount).exists())

    def test_offer_capped_at_ceiling(self):
        autobid = AutoBidFactory(max_bid_amount=Decimal('50.00'))
        competitor = AutoBidFactory(max_bid_amount=Decimal('45.00'))
        auction = AuctionFactory(starting_price=Decimal('49.50'))

        allocator = AutoBidAllocator()
        self.assertEqual(allocator.offer_for(autobid, competitor, auction), Decimal('50.00'))
        self.assertIsNone(allocator.offer_for(competitor, None, auction))

    def test_increment_that_cannot_fit_under_ceiling(self):
        autobid = AutoBidFactory(max_bid_amount=Decimal('50.00'))
        auction = AuctionFactory(starting_price=Decimal('49.50'), bid_increment_minimum=Decimal('1.00'))

        self.assertIsNone(AutoBidAllocator().offer_for(autobid, None, auction))


class TargetCountTest(TestCase):
    def setUp(self):
        self.now = timezone.now()
        self.autobid = AutoBidFactory(max_bid_amount=Decimal('100.00'), target_auction_count=2)

    def test_win_and_leading_fill_the_target(self):
        ended = AuctionFactory(
            start_time=self.now - timedelta(hours=2),
            end_time=self.now - timedelta(minutes=5),
        )
        running = AuctionFactory()
        spare = AuctionFactory()
        leading_claim(self.autobid, ended, Decimal('20.00'))
        leading_claim(self.autobid, running, Decimal('20.00'))

        report = run_allocation()

        self.assertEqual(report.claimed, 0)
        self.assertFalse(AutoBidClaim.objects.filter(auction=spare).exists())
        self.assertEqual(AutoBidClaim.objects.filter(autobid=self.autobid).count(), 2)

        self.autobid.refresh_from_db()
        self.assertEqual(self.autobid.current_win_count, 1)

    def test_claims_until_target_reached(self):
        auctions = [AuctionFactory(starting_price=Decimal(price)) for price in ('10.00', '30.00', '20.00')]

        report = run_allocation()

        self.assertEqual(report.claimed, 2)
        claimed = set(AutoBidClaim.objects.filter(autobid=self.autobid).values_list('auction_id', flat=True))
        # Highest priced auctions first
        self.assertEqual(claimed, {auctions[1].pk, auctions[2].pk})

        self.autobid.refresh_from_db()
        self.assertIsNotNone(self.autobid.last_processed_at)


class EvictionTest(TestCase):
    def test_higher_ceiling_evicts_holder(self):
        now = timezone.now()
        auction = AuctionFactory(starting_price=Decimal('40.00'))
        holder = AutoBidFactory(max_bid_amount=Decimal('50.00'), created_at=now - timedelta(minutes=10))

        run_allocation()
        self.assertEqual(AutoBidClaim.objects.get(auction=auction).autobid, holder)

        challenger = AutoBidFactory(max_bid_amount=Decimal('100.00'), created_at=now)
        report = run_allocation()

        self.assertEqual(report.evicted, 1)
        claim = AutoBidClaim.objects.get(auction=auction)
        self.assertEqual(claim.autobid, challenger)
        self.assertEqual(claim.bid.amount, Decimal('51.00'))
        self.assertEqual(AutoBidClaim.objects.filter(auction=auction).count(), 1)

    def test_inactive_holder_with_higher_ceiling_is_kept(self):
        auction = AuctionFactory(starting_price=Decimal('40.00'))
        holder = AutoBidFactory(max_bid_amount=Decimal('90.00'))
        leading_claim(holder, auction, Decimal('45.00'))
        AutoBid.objects.filter(pk=holder.pk).update(is_active=False)

        AutoBidFactory(max_bid_amount=Decimal('60.00'))
        run_allocation()

        self.assertEqual(AutoBidClaim.objects.get(auction=auction).autobid, holder)
        auction.refresh_from_db()
        self.assertEqual(auction.current_price, Decimal('45.00'))

    def test_inactive_holder_with_lower_ceiling_is_evicted(self):
        auction = AuctionFactory(starting_price=Decimal('40.00'))
        holder = AutoBidFactory(max_bid_amount=Decimal('50.00'))
        leading_claim(holder, auction, Decimal('45.00'))
        AutoBid.objects.filter(pk=holder.pk).update(is_active=False)

        challenger = AutoBidFactory(max_bid_amount=Decimal('60.00'))
        run_allocation()

        claim = AutoBidClaim.objects.get(auction=auction)
        self.assertEqual(claim.autobid, challenger)
        self.assertEqual(claim.bid.amount, Decimal('46.00'))

    def test_active_holder_with_higher_ceiling_is_kept(self):
        auction = AuctionFactory(starting_price=Decimal('40.00'))
        holder = AutoBidFactory(max_bid_amount=Decimal('90.00'), target_auction_count=1)
        leading_claim(holder, auction, Decimal('45.00'))
        AutoBidFactory(max_bid_amount=Decimal('60.00'))

        run_allocation()

        self.assertEqual(AutoBidClaim.objects.get(auction=auction).autobid, holder)
        auction.refresh_from_db()
        self.assertEqual(auction.current_price, Decimal('45.00'))


class StaleClaimTest(TestCase):
    def test_overtaken_claim_is_pruned_and_retaken(self):
        auction = AuctionFactory(starting_price=Decimal('40.00'))
        autobid = AutoBidFactory(max_bid_amount=Decimal('100.00'))
        run_allocation()

        place_bid(auction.pk, UserFactory(), Decimal('60.00'))
        report = run_allocation()

        self.assertEqual(report.pruned, 1)
        claim = AutoBidClaim.objects.get(auction=auction)
        self.assertEqual(claim.autobid, autobid)
        self.assertEqual(claim.bid.amount, Decimal('61.00'))

    def test_overtaken_beyond_ceiling(self):
        auction = AuctionFactory(starting_price=Decimal('40.00'))
        AutoBidFactory(max_bid_amount=Decimal('50.00'))
        run_allocation()

        place_bid(auction.pk, UserFactory(), Decimal('75.00'))
        report = run_allocation()

        self.assertEqual(report.pruned, 1)
        self.assertFalse(AutoBidClaim.objects.filter(auction=auction).exists())


class ClaimUniquenessTest(TestCase):
    def test_one_claim_per_auction(self):
        auction = AuctionFactory()
        first = AutoBidFactory()
        second = AutoBidFactory()
        leading_claim(first, auction, Decimal('20.00'))

        with self.assertRaises(IntegrityError):
            with transaction.atomic():
                AutoBidClaim.objects.create(autobid=second, auction=auction)

    def test_competing_autobids_leave_one_claim_each_auction(self):
        auctions = [AuctionFactory(starting_price=Decimal('10.00')) for _ in range(3)]
        for ceiling in ('30.00', '60.00', '90.00'):
            AutoBidFactory(max_bid_amount=Decimal(ceiling), target_auction_count=2)

        run_allocation()
        run_allocation()

        for auction in auctions:
            self.assertLessEqual(AutoBidClaim.objects.filter(auction=auction).count(), 1)


class ActiveAuctionSelectionTest(TestCase):
    def test_only_running_auctions_are_considered(self):
        now = timezone.now()
        AuctionFactory(start_time=now + timedelta(hours=1), end_time=now + timedelta(hours=2))
        AuctionFactory(start_time=now - timedelta(hours=2), end_time=now - timedelta(hours=1))
        running = AuctionFactory()

        self.assertEqual(list(AutoBidAllocator().active_auctions(now)), [running])

    def test_finalized_auctions_are_not_considered(self):
        now = timezone.now()
        running = AuctionFactory()
        Auction.objects.filter(pk=AuctionFactory().pk).update(is_finalized=True)

        self.assertEqual(list(AutoBidAllocator().active_auctions(now)), [running])


class ClosedAuctionTest(TestCase):
    def test_auction_that_ended_during_the_pass_is_skipped(self):
        now = timezone.now()
        auction = AuctionFactory(
            start_time=now - timedelta(hours=2),
            end_time=now - timedelta(minutes=1),
            starting_price=Decimal('40.00'),
        )
        AutoBidFactory(max_bid_amount=Decimal('100.00'))

        # Pass clock taken before the auction ended
        report = AutoBidAllocator(now=auction.end_time - timedelta(minutes=5)).run()

        self.assertEqual(report.claimed, 0)
        self.assertFalse(AutoBidClaim.objects.filter(auction=auction).exists())
        self.assertFalse(Bid.objects.filter(auction=auction).exists())

    def test_auction_finalized_during_the_pass_is_skipped(self):
        now = timezone.now()
        auction = AuctionFactory(
            start_time=now - timedelta(hours=2),
            end_time=now - timedelta(minutes=1),
            starting_price=Decimal('40.00'),
        )
        Bid.objects.create(auction=auction, bidder=UserFactory(), amount=Decimal('45.00'))
        Auction.objects.filter(pk=auction.pk).update(current_price=Decimal('45.00'))
        self.assertTrue(finalize_auction(auction.pk))

        AutoBidFactory(max_bid_amount=Decimal('100.00'))
        AutoBidAllocator(now=auction.end_time - timedelta(minutes=5)).run()

        auction.refresh_from_db()
        self.assertEqual(auction.current_price, Decimal('45.00'))
        self.assertFalse(AutoBidClaim.objects.exists())
        self.assertEqual(Bid.objects.filter(auction=auction).count(), 1)

    def test_finalized_flag_is_checked_under_the_lock(self):
        auction = AuctionFactory(starting_price=Decimal('40.00'))
        autobid = AutoBidFactory(max_bid_amount=Decimal('100.00'))
        Auction.objects.filter(pk=auction.pk).update(is_finalized=True)

        outcome = AutoBidAllocator().try_claim(autobid, None, auction.pk)

        self.assertEqual(outcome, SKIPPED)
        self.assertFalse(Bid.objects.filter(auction=auction).exists())


class FailedAuctionTest(TestCase):
    def test_failure_on_one_auction_does_not_stop_the_pass(self):
        autobid = AutoBidFactory(max_bid_amount=Decimal('100.00'), target_auction_count=1)
        dear = AuctionFactory(starting_price=Decimal('30.00'))
        cheap = AuctionFactory(starting_price=Decimal('20.00'))
        calls = []

        def refuse_first(*args, **kwargs):
            calls.append(args[0].pk)
            if len(calls) == 1:
                raise NotHighEnough('Bid must be higher than current price.')
            return accept_bid(*args, **kwargs)

        with patch('bidding.allocator.accept_bid', side_effect=refuse_first):
            report = run_allocation()

        self.assertEqual(calls, [dear.pk, cheap.pk])
        self.assertEqual(report.failed, 1)
        self.assertEqual(report.claimed, 1)
        self.assertEqual(AutoBidClaim.objects.get(autobid=autobid).auction, cheap)
        self.assertFalse(Bid.objects.filter(auction=dear).exists())
