"""
DRF permission classes by role.

Roles:
- Clinic: sends, lists and deletes its own documents; manages contractors
- Patient: reads, signs and rejects documents addressed to its phone number
- Admin: full access
"""
from rest_framework import permissions

from apps.authz.models import RoleChoices


class IsClinicUser(permissions.BasePermission):
    """Allow only users acting for a clinic."""

    message = 'This endpoint requires a clinic account.'

    def has_permission(self, request, view):
        if not request.user or not request.user.is_authenticated:
            return False
        return request.user.is_clinic_user


class IsPatientUser(permissions.BasePermission):
    """Allow only patient accounts."""

    message = 'This endpoint requires a patient account.'

    def has_permission(self, request, view):
        if not request.user or not request.user.is_authenticated:
            return False
        return request.user.role == RoleChoices.PATIENT


class IsDocumentParticipant(permissions.BasePermission):
    """
    Object-level access to a document.

    The owning clinic and the recipient patient may access it; admins
    may access everything.
    """

    def has_permission(self, request, view):
        return bool(request.user and request.user.is_authenticated)

    def has_object_permission(self, request, view, obj):
        user = request.user
        if user.role == RoleChoices.ADMIN:
            return True
        if user.is_clinic_user:
            return obj.clinic_id == user.clinic_id
        if user.role == RoleChoices.PATIENT:
            return obj.recipient_phone_number == user.phone_number
        return False
