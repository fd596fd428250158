from decimal import Decimal

from django.test import TestCase

from bidding import autobids
from bidding.exceptions import BiddingError, NotFound, Unauthorized
from bidding.models import AutoBid, AutoBidClaim
from bidding.tests.factories import AuctionFactory, AutoBidFactory, UserFactory, leading_claim


class CreateAutoBidTest(TestCase):
    def setUp(self):
        self.user = UserFactory()

    def test_create(self):
        autobid = autobids.create_autobid(self.user, '75.50', 3)

        self.assertEqual(autobid.max_bid_amount, Decimal('75.50'))
        self.assertEqual(autobid.target_auction_count, 3)
        self.assertTrue(autobid.is_active)
        self.assertEqual(autobid.current_win_count, 0)

    def test_new_autobid_replaces_active_one(self):
        first = autobids.create_autobid(self.user, '50.00', 1)
        second = autobids.create_autobid(self.user, '80.00', 2)

        first.refresh_from_db()
        self.assertFalse(first.is_active)
        self.assertTrue(second.is_active)
        self.assertEqual(AutoBid.objects.filter(user=self.user, is_active=True).count(), 1)

    def test_other_users_unaffected(self):
        other = AutoBidFactory()
        autobids.create_autobid(self.user, '50.00', 1)
        other.refresh_from_db()
        self.assertTrue(other.is_active)

    def test_rejects_non_positive_values(self):
        with self.assertRaises(BiddingError):
            autobids.create_autobid(self.user, '0', 1)
        with self.assertRaises(BiddingError):
            autobids.create_autobid(self.user, '10', 0)


class ManageAutoBidTest(TestCase):
    def setUp(self):
        self.owner = UserFactory()
        self.autobid = AutoBidFactory(user=self.owner)

    def test_deactivate(self):
        autobids.deactivate_autobid(self.autobid.pk, self.owner)
        self.autobid.refresh_from_db()
        self.assertFalse(self.autobid.is_active)

    def test_only_owner_may_manage(self):
        with self.assertRaises(Unauthorized):
            autobids.deactivate_autobid(self.autobid.pk, UserFactory())
        with self.assertRaises(NotFound):
            autobids.delete_autobid(999999, self.owner)

    def test_delete_removes_claims(self):
        leading_claim(self.autobid, AuctionFactory(), Decimal('20.00'))
        autobids.delete_autobid(self.autobid.pk, self.owner)

        self.assertFalse(AutoBid.objects.filter(pk=self.autobid.pk).exists())
        self.assertEqual(AutoBidClaim.objects.count(), 0)

    def test_delete_all(self):
        AutoBidFactory(user=self.owner, is_active=False)
        AutoBidFactory()

        self.assertEqual(autobids.delete_all_autobids(self.owner), 2)
        self.assertEqual(AutoBid.objects.count(), 1)


class OrderbookTest(TestCase):
    def test_groups_active_autobids_by_ceiling(self):
        AutoBidFactory(max_bid_amount=Decimal('50.00'), target_auction_count=2)
        AutoBidFactory(max_bid_amount=Decimal('50.00'), target_auction_count=3)
        AutoBidFactory(max_bid_amount=Decimal('90.00'), target_auction_count=1)
        AutoBidFactory(max_bid_amount=Decimal('70.00'), is_active=False)

        book = autobids.autobid_orderbook()

        self.assertEqual(book, [
            {'max_bid_amount': Decimal('90.00'), 'total_target_count': 1, 'user_count': 1},
            {'max_bid_amount': Decimal('50.00'), 'total_target_count': 5, 'user_count': 2},
        ])


class PositionsTest(TestCase):
    def test_reports_whether_still_on_top(self):
        autobid = AutoBidFactory()
        on_top = AuctionFactory()
        overtaken = AuctionFactory()
        leading_claim(autobid, on_top, Decimal('20.00'))
        leading_claim(autobid, overtaken, Decimal('20.00'))
        overtaken.current_price = Decimal('35.00')
        overtaken.save()

        positions = {p['auction']['id']: p for p in autobids.autobid_positions(autobid)}

        self.assertTrue(positions[on_top.pk]['is_highest_bidder'])
        self.assertFalse(positions[overtaken.pk]['is_highest_bidder'])
        self.assertEqual(positions[overtaken.pk]['current_bid_amount'], Decimal('20.00'))
        self.assertEqual(positions[overtaken.pk]['auction']['current_price'], Decimal('35.00'))
