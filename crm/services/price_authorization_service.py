"""Manager authorizations for kit prices below the minimum."""
import logging
import secrets
from typing import Optional

from crm.decorators.permissions import has_permission
from crm.exceptions import AuthorizationRequiredError, BusinessLogicError, NotFoundError, UnauthorizedError
from crm.models import DiscountAuthorization, OrganizationMember, Product, ProductPriceKit

logger = logging.getLogger(__name__)

CODE_ALPHABET = 'ABCDEFGHJKLMNPQRSTUVWXYZ23456789'
CODE_LENGTH = 6


def _generate_code(session) -> str:
    while True:
        code = ''.join(secrets.choice(CODE_ALPHABET) for _ in range(CODE_LENGTH))
        if not session.query(DiscountAuthorization.id).filter_by(authorization_code=code).first():
            return code


def grant_authorization(session, organization_id: int, authorizer_user_id: int, seller_user_id: int,
                        product_id: int, authorized_price_cents: int,
                        kit_id: Optional[int] = None) -> DiscountAuthorization:
    """
    Issue an authorization code for one product/kit at one total price.

    The authorizer must hold ``authorize_discount`` in the organization.
    """
    member = session.query(OrganizationMember).filter_by(
        organization_id=organization_id, user_id=authorizer_user_id, active=True
    ).first()
    if not member or not has_permission(member.role, 'authorize_discount'):
        raise UnauthorizedError('Somente gerentes podem autorizar preços abaixo do mínimo')
    if authorizer_user_id == seller_user_id and not member.is_admin():
        raise UnauthorizedError('O vendedor não pode autorizar o próprio desconto')

    product = session.query(Product).filter_by(id=product_id, organization_id=organization_id).first()
    if not product:
        raise NotFoundError('Produto não encontrado')

    if kit_id is not None:
        kit = session.query(ProductPriceKit).filter_by(id=kit_id, product_id=product.id).first()
        if not kit:
            raise NotFoundError('Kit não encontrado')
        minimum = kit.minimum_price_cents or 0
    else:
        minimum = product.minimum_price or 0

    if authorized_price_cents is None or int(authorized_price_cents) <= 0:
        raise BusinessLogicError('Preço autorizado deve ser maior que zero')

    try:
        authorization = DiscountAuthorization(
            organization_id=organization_id,
            product_id=product.id,
            kit_id=kit_id,
            seller_user_id=seller_user_id,
            authorizer_user_id=authorizer_user_id,
            authorization_code=_generate_code(session),
            minimum_price_cents=minimum,
            authorized_price_cents=int(authorized_price_cents),
            discount_amount_cents=max(0, minimum - int(authorized_price_cents)),
        )
        session.add(authorization)
        session.commit()
    except Exception:
        session.rollback()
        raise

    logger.info(
        f"[AUTH] Price {authorized_price_cents} authorized for product {product.id} "
        f"by user {authorizer_user_id} (code {authorization.authorization_code})"
    )
    return authorization


def verify_authorization(session, organization_id: int, code: str, product_id: int,
                         price_cents: int, seller_user_id: Optional[int] = None) -> DiscountAuthorization:
    """
    Look up an unused authorization that covers a line.

    The line total may not go below the authorized price.
    """
    if not code:
        raise AuthorizationRequiredError()
    authorization = session.query(DiscountAuthorization).filter_by(
        organization_id=organization_id,
        authorization_code=code.strip().upper(),
        product_id=product_id,
    ).first()
    if not authorization:
        raise AuthorizationRequiredError('Código de autorização inválido')
    if authorization.is_used:
        raise AuthorizationRequiredError('Código de autorização já utilizado')
    if seller_user_id is not None and authorization.seller_user_id != seller_user_id:
        raise AuthorizationRequiredError('Autorização emitida para outro vendedor')
    if price_cents < authorization.authorized_price_cents:
        raise AuthorizationRequiredError('Preço abaixo do valor autorizado')
    return authorization
