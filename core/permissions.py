# core/permissions.py

from dataclasses import dataclass

from rest_framework.permissions import BasePermission

from .constants import UserRoles


@dataclass(frozen=True)
class Actor:
    """Already-authenticated caller: who is acting and in which role."""
    id: int
    role: str

    @classmethod
    def from_user(cls, user):
        return cls(id=user.pk, role=user.role)

    @property
    def is_admin(self):
        return self.role == UserRoles.ADMIN

    @property
    def is_doctor(self):
        return self.role == UserRoles.DOCTOR


# =========================
# Role-Based Permissions
# =========================

class HasRole(BasePermission):
    """
    Generic role-based permission.
    Subclasses list the roles allowed through.
    """
    required_roles = []

    def has_permission(self, request, view):
        user = request.user
        if not user or not user.is_authenticated or not user.is_active:
            return False
        return user.role in self.required_roles


class IsStaff(HasRole):
    required_roles = UserRoles.STAFF


class IsAnyRole(HasRole):
    required_roles = UserRoles.ALL


class CanBook(HasRole):
    """Create, update and reschedule appointments"""
    required_roles = [UserRoles.ADMIN, UserRoles.DOCTOR, UserRoles.RECEPTIONIST]


class CanCancel(HasRole):
    required_roles = [UserRoles.ADMIN, UserRoles.DOCTOR, UserRoles.RECEPTIONIST, UserRoles.PATIENT]


class CanCheckIn(HasRole):
    required_roles = [UserRoles.ADMIN, UserRoles.NURSE, UserRoles.RECEPTIONIST]


class CanManageWaitingList(HasRole):
    required_roles = [UserRoles.ADMIN, UserRoles.RECEPTIONIST]


class CanManageSchedules(HasRole):
    """Schedule endpoints; ownership is checked per doctor"""
    required_roles = [UserRoles.ADMIN, UserRoles.DOCTOR]


# =========================
# Schedule ownership
# =========================

def can_manage_doctor_schedule(actor, doctor):
    """A doctor may only touch their own schedule; admins may touch any."""
    if actor.is_admin:
        return True
    return actor.is_doctor and doctor.user_id == actor.id
