"""
Role-based permissions для DRF.

Роль берётся из DealerMembership текущего пользователя; membership
определяет и дилера, к данным которого относится запрос.
"""
from django.utils.translation import gettext_lazy as _
from rest_framework.exceptions import NotAuthenticated
from rest_framework.permissions import BasePermission

from .models import DealerMembership


class Permission:
    DEALERS_VIEW = 'dealers.view'
    DEALERS_CREATE = 'dealers.create'
    DEALERS_EDIT = 'dealers.edit'
    DEALERS_DELETE = 'dealers.delete'
    DEALER_USERS_MANAGE = 'dealers.users.manage'

    PRE_REGISTRATION_VIEW = 'pre_registration.view'
    PRE_REGISTRATION_CREATE = 'pre_registration.create'
    PRE_REGISTRATION_EDIT = 'pre_registration.edit'
    PRE_REGISTRATION_DELETE = 'pre_registration.delete'
    PRE_REGISTRATION_CONVERT = 'pre_registration.convert'

    STUDENTS_VIEW = 'students.view'
    STUDENTS_CREATE = 'students.create'
    STUDENTS_EDIT = 'students.edit'
    STUDENTS_DELETE = 'students.delete'

    TRAINERS_VIEW = 'trainers.view'
    TRAINERS_CREATE = 'trainers.create'
    TRAINERS_EDIT = 'trainers.edit'
    TRAINERS_DELETE = 'trainers.delete'

    GROUPS_VIEW = 'groups.view'
    GROUPS_CREATE = 'groups.create'
    GROUPS_EDIT = 'groups.edit'
    GROUPS_DELETE = 'groups.delete'

    ATTENDANCE_VIEW = 'attendance.view'
    ATTENDANCE_TAKE = 'attendance.take'

    PAYMENTS_VIEW = 'accounting.payments.view'
    PAYMENTS_CREATE = 'accounting.payments.create'

    SHOP_VIEW = 'shop.view'
    SHOP_MANAGE = 'shop.manage'

    SETTINGS_VIEW = 'settings.view'
    SETTINGS_EDIT = 'settings.edit'

    SUB_DEALERS_VIEW = 'sub_dealers.view'
    SUB_DEALERS_MANAGE = 'sub_dealers.manage'


Role = DealerMembership.Role

ROLE_PERMISSIONS = {
    # Super admin управляет только дилерами и пресетами
    Role.SUPER_ADMIN: frozenset({
        Permission.DEALERS_VIEW,
        Permission.DEALERS_CREATE,
        Permission.DEALERS_EDIT,
        Permission.DEALERS_DELETE,
        Permission.DEALER_USERS_MANAGE,
    }),
    Role.DEALER_ADMIN: frozenset({
        Permission.PRE_REGISTRATION_VIEW,
        Permission.PRE_REGISTRATION_CREATE,
        Permission.PRE_REGISTRATION_EDIT,
        Permission.PRE_REGISTRATION_DELETE,
        Permission.PRE_REGISTRATION_CONVERT,
        Permission.STUDENTS_VIEW,
        Permission.STUDENTS_CREATE,
        Permission.STUDENTS_EDIT,
        Permission.STUDENTS_DELETE,
        Permission.TRAINERS_VIEW,
        Permission.TRAINERS_CREATE,
        Permission.TRAINERS_EDIT,
        Permission.TRAINERS_DELETE,
        Permission.GROUPS_VIEW,
        Permission.GROUPS_CREATE,
        Permission.GROUPS_EDIT,
        Permission.GROUPS_DELETE,
        Permission.ATTENDANCE_VIEW,
        Permission.ATTENDANCE_TAKE,
        Permission.PAYMENTS_VIEW,
        Permission.PAYMENTS_CREATE,
        Permission.SHOP_VIEW,
        Permission.SHOP_MANAGE,
        Permission.SETTINGS_VIEW,
        Permission.SETTINGS_EDIT,
        Permission.SUB_DEALERS_VIEW,
        Permission.SUB_DEALERS_MANAGE,
    }),
    Role.TRAINER: frozenset({
        Permission.ATTENDANCE_VIEW,
        Permission.ATTENDANCE_TAKE,
        Permission.STUDENTS_VIEW,
        Permission.GROUPS_VIEW,
    }),
}


def role_has_permission(role, permission):
    return permission in ROLE_PERMISSIONS.get(role, frozenset())


def resolve_membership(request):
    """
    Active membership of the authenticated user.

    Если хост запроса уже определил дилера и пользователь в нём состоит,
    берётся именно это членство; иначе самое раннее активное.
    """
    user = getattr(request, 'user', None)
    if user is None or not user.is_authenticated:
        return None
    memberships = DealerMembership.objects.filter(
        user=user, is_active=True, dealer__is_active=True,
    ).select_related('dealer')
    host_dealer = getattr(request, 'dealer', None)
    if host_dealer is not None:
        membership = memberships.filter(dealer=host_dealer).first()
        if membership is not None:
            return membership
    return memberships.order_by('joined_at').first()


class HasDealerSession(BasePermission):
    """
    Пользователь должен состоять в дилере; иначе 401.

    View может задать required_permission или required_permissions
    (dict: action/HTTP method → permission).
    """

    message = _('You do not have permission to perform this action.')

    def has_permission(self, request, view):
        membership = getattr(request, 'dealer_membership', None)
        if membership is None:
            membership = resolve_membership(request)
            if membership is None:
                raise NotAuthenticated(_('Authorization error'))
            request.dealer_membership = membership

        required = self.get_required_permission(request, view)
        if required is None:
            return True
        return role_has_permission(membership.role, required)

    @staticmethod
    def get_required_permission(request, view):
        mapping = getattr(view, 'required_permissions', None) or {}
        action = getattr(view, 'action', None)
        if action and action in mapping:
            return mapping[action]
        if request.method in mapping:
            return mapping[request.method]
        return getattr(view, 'required_permission', None)
