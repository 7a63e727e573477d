"""Middleware for authentication and organization context."""
from functools import wraps
from flask import session, g, jsonify, current_app
from crm.database import get_session
from crm.models import AppUser, OrganizationMember, Organization


def load_user_and_organization():
    """
    Load current user and organization into g.

    Called before each request. Sets g.user, g.organization_id, g.member
    and g.member_role when the session is authenticated.
    """
    g.user = None
    g.user_id = None
    g.organization_id = None
    g.member = None
    g.member_role = None

    user_id = session.get('user_id')
    if not user_id:
        return

    db_session = get_session()
    if not db_session:
        return

    try:
        user = db_session.query(AppUser).filter_by(id=user_id, active=True).first()
        if not user:
            return
        g.user = user
        g.user_id = user.id

        organization_id = session.get('organization_id')
        if not organization_id:
            return

        member = db_session.query(OrganizationMember).join(Organization).filter(
            OrganizationMember.user_id == user.id,
            OrganizationMember.organization_id == organization_id,
            OrganizationMember.active.is_(True),
            Organization.active.is_(True),
        ).first()

        if member:
            g.organization_id = member.organization_id
            g.member = member
            g.member_role = member.role
        else:
            # User lost access to this organization
            session.pop('organization_id', None)
    except Exception as e:
        current_app.logger.error(f"Error in load_user_and_organization: {e}")
        db_session.rollback()


def require_login(f):
    """Decorator: require an authenticated user (401 otherwise)."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if g.get('user') is None:
            return jsonify({'status': 'error', 'message': 'Faça login para continuar'}), 401
        return f(*args, **kwargs)
    return decorated_function


def require_organization(f):
    """
    Decorator: require a selected organization.

    Must be used AFTER require_login.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if g.get('organization_id') is None:
            return jsonify({'status': 'error', 'message': 'Selecione uma organização primeiro'}), 403
        return f(*args, **kwargs)
    return decorated_function
