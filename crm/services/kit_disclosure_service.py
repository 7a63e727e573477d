"""
Progressive kit disclosure.

Kits of a product are offered one at a time in position order. The seller
only moves to the next (cheaper) kit after recording why the customer
declined the current one. The promotional-2 and minimum prices of a kit
stay hidden until the seller explicitly reveals them.
"""
import logging
from typing import Iterable, List, Optional

from crm.exceptions import BusinessLogicError, NotFoundError
from crm.models import KitRejection, Lead, Product, ProductPriceKit, PriceTier

logger = logging.getLogger(__name__)


class KitDisclosure:
    """Disclosure state of one product for one lead."""

    def __init__(self, kits: Iterable, rejected_kit_ids: Iterable = (),
                 show_promotional_2: bool = False, show_minimum: bool = False):
        self.kits = sorted(kits, key=lambda k: (k.position, k.id or 0))
        self.rejected_kit_ids = list(dict.fromkeys(rejected_kit_ids))
        self.show_promotional_2 = show_promotional_2
        self.show_minimum = show_minimum

    @property
    def current_kit(self):
        """Lowest-position kit not yet rejected."""
        for kit in self.kits:
            if kit.id not in self.rejected_kit_ids:
                return kit
        return None

    @property
    def previous_kits(self) -> List:
        return [kit for kit in self.kits if kit.id in self.rejected_kit_ids]

    @property
    def is_last_kit(self) -> bool:
        current = self.current_kit
        return bool(self.kits) and current is not None and current.id == self.kits[-1].id

    @property
    def all_kits_revealed(self) -> bool:
        return len(self.rejected_kit_ids) >= len(self.kits) - 1 or self.is_last_kit

    @property
    def can_reject(self) -> bool:
        return len(self.kits) > 1 and not self.all_kits_revealed

    def reject(self, kit_id, reason: str) -> 'KitDisclosure':
        """Mark the current kit as declined; the next kit becomes current."""
        if not reason or not reason.strip():
            raise BusinessLogicError('Informe o motivo da recusa')
        if not self.can_reject:
            raise BusinessLogicError('Todos os kits já foram apresentados')
        current = self.current_kit
        if current is None or current.id != kit_id:
            raise BusinessLogicError('Só é possível recusar o kit apresentado no momento')
        self.rejected_kit_ids.append(kit_id)
        return self

    def reveal_promotional_2(self):
        self.show_promotional_2 = True
        return self

    def reveal_minimum(self):
        self.show_minimum = True
        return self

    def visible_tiers(self, kit=None) -> List[str]:
        """Price tiers the seller may offer for a kit right now."""
        kit = kit or self.current_kit
        if kit is None:
            return []
        tiers = []
        if kit.promotional_price_cents:
            tiers.append(PriceTier.PROMOTIONAL.value)
        tiers.append(PriceTier.REGULAR.value)
        if kit.promotional_price_2_cents and self.show_promotional_2:
            tiers.append(PriceTier.PROMOTIONAL_2.value)
        if kit.minimum_price_cents and self.show_minimum:
            tiers.append(PriceTier.MINIMUM.value)
        return tiers

    def hidden_tiers(self, kit=None) -> List[str]:
        """Hidden tiers that have a price and can still be revealed."""
        kit = kit or self.current_kit
        if kit is None:
            return []
        hidden = []
        if kit.promotional_price_2_cents and not self.show_promotional_2:
            hidden.append(PriceTier.PROMOTIONAL_2.value)
        if kit.minimum_price_cents and not self.show_minimum:
            hidden.append(PriceTier.MINIMUM.value)
        return hidden

    def to_dict(self):
        current = self.current_kit
        return {
            'current_kit_id': current.id if current else None,
            'rejected_kit_ids': list(self.rejected_kit_ids),
            'all_kits_revealed': self.all_kits_revealed,
            'can_reject': self.can_reject,
            'visible_tiers': self.visible_tiers(),
            'hidden_tiers': self.hidden_tiers(),
        }


def _get_lead_and_product(session, organization_id: int, lead_id: int, product_id: int):
    lead = session.query(Lead).filter_by(id=lead_id, organization_id=organization_id).first()
    if not lead:
        raise NotFoundError('Lead não encontrado')
    product = session.query(Product).filter_by(id=product_id, organization_id=organization_id).first()
    if not product:
        raise NotFoundError('Produto não encontrado')
    return lead, product


def load_disclosure(session, organization_id: int, lead_id: int, product_id: int,
                    show_promotional_2: bool = False, show_minimum: bool = False) -> KitDisclosure:
    """Rebuild the disclosure state from the persisted rejections."""
    _, product = _get_lead_and_product(session, organization_id, lead_id, product_id)
    rejected = session.query(KitRejection.kit_id).filter(
        KitRejection.organization_id == organization_id,
        KitRejection.lead_id == lead_id,
        KitRejection.product_id == product_id,
    ).order_by(KitRejection.id).all()
    return KitDisclosure(
        product.price_kits,
        [row.kit_id for row in rejected],
        show_promotional_2=show_promotional_2,
        show_minimum=show_minimum,
    )


def reject_kit(session, organization_id: int, user_id: int, lead_id: int, product_id: int,
               kit_id: int, reason: str) -> KitDisclosure:
    """
    Record that the lead declined a kit and advance the disclosure.

    The price stored with the rejection is the one that was on offer:
    promotional when set, otherwise regular.
    """
    disclosure = load_disclosure(session, organization_id, lead_id, product_id)
    kit = session.query(ProductPriceKit).filter_by(
        id=kit_id, product_id=product_id, organization_id=organization_id
    ).first()
    if not kit:
        raise NotFoundError('Kit não encontrado')

    try:
        disclosure.reject(kit.id, reason)
        session.add(KitRejection(
            organization_id=organization_id,
            lead_id=lead_id,
            product_id=product_id,
            kit_id=kit.id,
            rejected_by=user_id,
            rejection_reason=reason.strip(),
            kit_quantity=kit.quantity,
            kit_price_cents=kit.offer_price_cents,
        ))
        session.commit()
    except BusinessLogicError:
        session.rollback()
        raise

    logger.info(f"[KITS] Lead {lead_id} rejected kit {kit.id} of product {product_id}")
    return disclosure


def list_rejections(session, organization_id: int, lead_id: int, product_id: Optional[int] = None):
    query = session.query(KitRejection).filter(
        KitRejection.organization_id == organization_id,
        KitRejection.lead_id == lead_id,
    )
    if product_id:
        query = query.filter(KitRejection.product_id == product_id)
    return query.order_by(KitRejection.created_at.desc(), KitRejection.id.desc()).all()
