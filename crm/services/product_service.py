"""Product catalog service: products, their price kits and key questions."""
import logging
from typing import Any, Dict, List, Optional

from crm.exceptions import BusinessLogicError, NotFoundError
from crm.models import KIT_CATEGORIES, Product, ProductPriceKit, ProductQuestion

logger = logging.getLogger(__name__)

PRODUCT_FIELDS = (
    'name', 'description', 'sales_script', 'category', 'is_active', 'is_featured', 'usage_period_days',
    'price_1_unit', 'price_3_units', 'price_6_units', 'price_12_units', 'minimum_price', 'cost_cents',
    'track_stock', 'minimum_stock', 'crosssell_product_1_id', 'crosssell_product_2_id',
)

KIT_FIELDS = (
    'quantity', 'regular_price_cents', 'regular_use_default_commission', 'regular_custom_commission',
    'promotional_price_cents', 'promotional_use_default_commission', 'promotional_custom_commission',
    'promotional_price_2_cents', 'promotional_2_use_default_commission', 'promotional_2_custom_commission',
    'minimum_price_cents', 'minimum_use_default_commission', 'minimum_custom_commission', 'points',
)


def get_product(session, organization_id: int, product_id: int) -> Product:
    product = session.query(Product).filter_by(id=product_id, organization_id=organization_id).first()
    if not product:
        raise NotFoundError('Produto não encontrado')
    return product


def list_products(session, organization_id: int, active_only: bool = False,
                  category: Optional[str] = None) -> List[Product]:
    query = session.query(Product).filter(Product.organization_id == organization_id)
    if active_only:
        query = query.filter(Product.is_active.is_(True))
    if category:
        query = query.filter(Product.category == category)
    return query.order_by(Product.is_featured.desc(), Product.name).all()


def list_low_stock(session, organization_id: int) -> List[Product]:
    products = session.query(Product).filter(
        Product.organization_id == organization_id,
        Product.track_stock.is_(True),
        Product.is_active.is_(True),
    ).order_by(Product.name).all()
    return [p for p in products if p.is_low_stock]


def _validate_kit(data: Dict[str, Any]) -> None:
    if int(data.get('quantity') or 0) < 1:
        raise BusinessLogicError('Quantidade do kit deve ser pelo menos 1')
    if int(data.get('regular_price_cents') or 0) <= 0:
        raise BusinessLogicError('Preço regular do kit deve ser maior que zero')
    for field in ('promotional_price_cents', 'promotional_price_2_cents', 'minimum_price_cents'):
        if data.get(field) is not None and int(data[field]) < 0:
            raise BusinessLogicError('Preços não podem ser negativos')


def _replace_kits(product: Product, kits: List[Dict[str, Any]]) -> None:
    """Replace the kit list; positions follow the given order."""
    if kits and product.category not in KIT_CATEGORIES:
        raise BusinessLogicError('Esta categoria de produto não usa kits')
    for data in kits:
        _validate_kit(data)

    existing = {k.id: k for k in product.price_kits}
    keep = []
    for position, data in enumerate(kits):
        kit = existing.get(data.get('id'))
        if kit is None:
            kit = ProductPriceKit(organization_id=product.organization_id)
            product.price_kits.append(kit)
        for field in KIT_FIELDS:
            if field in data:
                setattr(kit, field, data[field])
        kit.position = position
        keep.append(kit)
    for kit in list(product.price_kits):
        if kit not in keep:
            product.price_kits.remove(kit)


def _replace_questions(product: Product, questions: List[str]) -> None:
    product.questions[:] = []
    for position, text in enumerate(q.strip() for q in questions if q and q.strip()):
        product.questions.append(ProductQuestion(
            organization_id=product.organization_id, question=text, position=position
        ))


def save_product(session, organization_id: int, data: Dict[str, Any],
                 product_id: Optional[int] = None) -> Product:
    """
    Create (no ``product_id``) or update a product.

    ``kits`` and ``questions`` replace the current lists when present.
    """
    values = {k: data[k] for k in PRODUCT_FIELDS if k in data}
    if product_id is None and not (values.get('name') or '').strip():
        raise BusinessLogicError('Nome do produto é obrigatório')

    try:
        if product_id is None:
            product = Product(organization_id=organization_id)
            session.add(product)
        else:
            product = get_product(session, organization_id, product_id)

        for key, value in values.items():
            setattr(product, key, value)

        for crosssell_id in product.crosssell_ids:
            if product.id is not None and crosssell_id == product.id:
                raise BusinessLogicError('Produto não pode ser cross-sell dele mesmo')
            get_product(session, organization_id, crosssell_id)

        if 'kits' in data:
            _replace_kits(product, data.get('kits') or [])
        if 'questions' in data:
            _replace_questions(product, data.get('questions') or [])

        session.commit()
    except (BusinessLogicError, NotFoundError):
        session.rollback()
        raise

    logger.info(f"[PRODUCTS] Product {product.id} saved (org {organization_id})")
    return product
