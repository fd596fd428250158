from rest_framework import status
from rest_framework.exceptions import APIException


class BiddingError(APIException):
    """
    Base class for every failure the bidding engine reports to callers.
    The message is surfaced verbatim by the API; ``default_code`` is stable.
    """
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'The request could not be processed.'
    default_code = 'bidding_error'


class NotFound(BiddingError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = 'Not found.'
    default_code = 'not_found'


class NotStarted(BiddingError):
    default_detail = 'This auction has not started yet.'
    default_code = 'not_started'


class AuctionEnded(BiddingError):
    default_detail = 'This auction has ended.'
    default_code = 'auction_ended'


class BelowStartingPrice(BiddingError):
    default_detail = 'Bid must be at least the starting price.'
    default_code = 'below_starting_price'


class BelowMinIncrement(BiddingError):
    default_detail = 'Bid does not meet the minimum increment.'
    default_code = 'below_min_increment'


class NotHighEnough(BiddingError):
    default_detail = 'Bid must be higher than current price.'
    default_code = 'not_high_enough'


class Unauthorized(BiddingError):
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = 'You are not allowed to act on this resource.'
    default_code = 'unauthorized'


class AlreadyRedeemed(BiddingError):
    default_detail = 'This coupon has already been redeemed.'
    default_code = 'already_redeemed'


class NotOwned(BiddingError):
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = 'You do not own this coupon.'
    default_code = 'not_owned'
