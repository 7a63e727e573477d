"""
Permission decorators for role-based access control.
Extends require_login and require_organization with capability checks.
"""

from functools import wraps
from flask import g

from crm.exceptions import UnauthorizedError

ALL = 'all'

SALES_PERMISSIONS = [
    'view_sales', 'create_sales', 'edit_sales',
    'validate_expedition', 'dispatch', 'mark_delivered', 'confirm_payment',
    'cancel_sale', 'return_sale', 'reschedule_sale',
]

PERMISSION_MAP = {
    'owner': ALL,
    'admin': ALL,
    'manager': SALES_PERMISSIONS + [
        'view_products', 'edit_products', 'reject_kits', 'authorize_discount',
        'view_leads', 'edit_leads', 'manage_payment_methods', 'manage_delivery_settings',
    ],
    'seller': [
        'view_sales', 'create_sales', 'edit_sales',
        'view_products', 'reject_kits', 'view_leads', 'edit_leads',
    ],
    'shipping': ['view_sales', 'validate_expedition', 'dispatch', 'view_products'],
    'delivery': ['view_sales', 'mark_delivered', 'return_sale'],
    'finance': ['view_sales', 'confirm_payment', 'manage_payment_methods'],
}

# Never granted to non-admin roles
ADMIN_ONLY_PERMISSIONS = frozenset({'delete_sale', 'manage_members'})


def has_permission(role, permission_name):
    """Check whether a role grants a permission."""
    role_permissions = PERMISSION_MAP.get(role or '', [])
    if role_permissions == ALL:
        return True
    if permission_name in ADMIN_ONLY_PERMISSIONS:
        return False
    return permission_name in role_permissions


def current_user_can(permission_name):
    return has_permission(g.get('member_role'), permission_name)


def ensure_permission(permission_name):
    """Raise UnauthorizedError unless the current member holds the permission."""
    if not current_user_can(permission_name):
        raise UnauthorizedError(f'Sem permissão para: {permission_name}')


def require_permission(permission_name):
    """
    Decorator to check for a specific permission.

    Usage:
        @require_permission('confirm_payment')

    Must be used AFTER require_login and require_organization.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not g.get('user') or not g.get('organization_id'):
                raise UnauthorizedError('Acesso negado')
            ensure_permission(permission_name)
            return f(*args, **kwargs)
        return decorated_function
    return decorator


def require_role(*allowed_roles):
    """Restrict a route to specific roles (e.g. @require_role('owner', 'admin'))."""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if g.get('member_role') not in allowed_roles:
                raise UnauthorizedError('Você não tem permissão para acessar esta função')
            return f(*args, **kwargs)
        return decorated_function
    return decorator


def admin_required(f):
    """Shortcut decorator for owner/admin-only routes."""
    return require_role('owner', 'admin')(f)
