"""
Authentication blueprint.
Handles login, logout and organization selection (JSON).
"""
import logging
from typing import List, Tuple

from flask import Blueprint, request, session, g, jsonify, Response
from sqlalchemy import func

from crm.database import get_session
from crm.exceptions import BusinessLogicError, UnauthorizedError
from crm.middleware import require_login
from crm.models import AppUser, Organization, OrganizationMember
from crm.services.onboarding_service import has_onboarding_completed

logger = logging.getLogger(__name__)

auth_bp = Blueprint('auth', __name__, url_prefix='/auth')


def _active_memberships(user_id: int) -> List[Tuple[OrganizationMember, Organization]]:
    return get_session().query(OrganizationMember, Organization).join(
        Organization, Organization.id == OrganizationMember.organization_id
    ).filter(
        OrganizationMember.user_id == user_id,
        OrganizationMember.active.is_(True),
        Organization.active.is_(True),
    ).order_by(Organization.name).all()


def _organizations_payload(memberships) -> list:
    return [
        {'id': org.id, 'name': org.name, 'slug': org.slug, 'role': member.role}
        for member, org in memberships
    ]


def _user_payload(user: AppUser) -> dict:
    return {'id': user.id, 'email': user.email, 'full_name': user.full_name}


@auth_bp.route('/login', methods=['POST'])
def login() -> Tuple[Response, int]:
    """Validate email + password and open a session."""
    data = request.get_json(silent=True) or {}
    email = (data.get('email') or '').strip()
    password = data.get('password') or ''

    if not email or not password:
        raise BusinessLogicError('Email e senha são obrigatórios')

    user = get_session().query(AppUser).filter(func.lower(AppUser.email) == email.lower()).first()
    if not user or not user.active or not user.check_password(password):
        logger.info(f"[AUTH] Failed login for {email}")
        return jsonify({'status': 'error', 'message': 'Email ou senha incorretos'}), 401

    memberships = _active_memberships(user.id)
    if not memberships:
        return jsonify({'status': 'error', 'message': 'Sua conta não está associada a nenhuma organização'}), 403

    session.clear()
    session['user_id'] = user.id
    session.permanent = True

    payload = {'status': 'ok', 'user': _user_payload(user), 'organizations': _organizations_payload(memberships)}
    if len(memberships) == 1:
        organization_id = memberships[0][1].id
        session['organization_id'] = organization_id
        payload['organization_id'] = organization_id
        payload['onboarding_completed'] = has_onboarding_completed(get_session(), organization_id, user.id)
    else:
        payload['organization_id'] = None

    logger.info(f"[AUTH] User {user.id} logged in")
    return jsonify(payload), 200


@auth_bp.route('/select-organization', methods=['POST'])
@require_login
def select_organization() -> Tuple[Response, int]:
    """Pick the working organization among the user's memberships."""
    data = request.get_json(silent=True) or {}
    try:
        organization_id = int(data.get('organization_id'))
    except (TypeError, ValueError):
        raise BusinessLogicError('Organização inválida')

    memberships = _active_memberships(g.user.id)
    if not any(org.id == organization_id for _, org in memberships):
        raise UnauthorizedError('Você não tem acesso a esta organização')

    session['organization_id'] = organization_id
    return jsonify({
        'status': 'ok',
        'organization_id': organization_id,
        'onboarding_completed': has_onboarding_completed(get_session(), organization_id, g.user.id),
    }), 200


@auth_bp.route('/me')
@require_login
def me() -> Response:
    return jsonify({
        'user': _user_payload(g.user),
        'organization_id': g.organization_id,
        'role': g.member_role,
        'organizations': _organizations_payload(_active_memberships(g.user.id)),
    })


@auth_bp.route('/logout', methods=['POST'])
def logout() -> Response:
    session.clear()
    return jsonify({'status': 'ok'})
