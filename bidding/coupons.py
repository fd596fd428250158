import logging

from django.contrib.auth.models import User
from django.db import transaction
from django.db.models import Q
from django.utils import timezone
from django.utils.crypto import get_random_string

from .exceptions import AlreadyRedeemed, NotFound, NotOwned
from .models import Coupon, CouponBundle

logger = logging.getLogger(__name__)

CODE_ALPHABET = 'ABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789'


@transaction.atomic
def issue_coupons(auction_id, winner_id):
    """
    Give the auction's bundle to the winner and create its coupons once.
    """
    bundle = CouponBundle.objects.select_for_update().filter(auction_id=auction_id).first()
    if bundle is None:
        logger.error("No coupon bundle found for auction %s", auction_id)
        return None

    winner = User.objects.filter(pk=winner_id).first()
    if winner is None:
        logger.error("Winner %s of auction %s not found", winner_id, auction_id)
        return None

    bundle.winner = winner
    bundle.save(update_fields=['winner'])

    if not bundle.coupons.exists():
        # Codes are generated at redemption time
        Coupon.objects.bulk_create([
            Coupon(bundle=bundle, owner=winner) for _ in range(bundle.quantity)
        ])
        logger.info("Issued %s coupons for auction %s to user %s", bundle.quantity, auction_id, winner_id)

    return bundle


def coupons_for(user):
    """
    Coupons the user can use: directly owned or from a bundle they won.
    """
    return (
        Coupon.objects
        .filter(Q(owner=user) | Q(bundle__winner=user))
        .select_related('bundle')
        .distinct()
        .order_by('bundle_id', 'id')
    )


def redeem_coupon(coupon_id, user):
    with transaction.atomic():
        coupon = (
            Coupon.objects
            .select_for_update()
            .filter(pk=coupon_id)
            .first()
        )
        if coupon is None:
            raise NotFound("Coupon not found")

        if coupon.is_redeemed:
            raise AlreadyRedeemed("This coupon has already been redeemed")

        bundle = coupon.bundle
        if coupon.owner_id != user.pk and bundle.winner_id != user.pk:
            raise NotOwned("You do not own this coupon")

        suffix = str(bundle.auction_id)[-6:]
        coupon.code = f"COUPON-{suffix}-{get_random_string(6, CODE_ALPHABET)}"
        coupon.is_redeemed = True
        coupon.redeemed_by = user
        coupon.redeemed_at = timezone.now()
        coupon.save(update_fields=['code', 'is_redeemed', 'redeemed_by', 'redeemed_at'])

    logger.info("Coupon %s redeemed by user %s", coupon_id, user.pk)
    return coupon
