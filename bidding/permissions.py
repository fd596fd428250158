from rest_framework import permissions


class IsOwnerOrAdmin(permissions.BasePermission):
    """
    Custom permission to only allow owners of an object or admins to view or edit it.
    """
    owner_fields = ('creator', 'user', 'bidder', 'owner')

    def has_object_permission(self, request, view, obj):
        # Admin permissions
        if request.user.is_staff:
            return True

        # Auctions have a creator, auto-bids a user, bids a bidder, coupons an owner
        for field in self.owner_fields:
            if hasattr(obj, field):
                return getattr(obj, field) == request.user

        return False
