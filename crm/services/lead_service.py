"""Lead service - CRUD and search, scoped by organization."""
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import or_

from crm.exceptions import BusinessLogicError, NotFoundError
from crm.models import Lead, LeadStage
from crm.utils.phone import only_digits

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = (
    'name', 'whatsapp', 'instagram', 'email', 'specialty', 'followers', 'stage', 'stars',
    'assigned_to', 'lead_source', 'observations', 'meeting_date', 'meeting_time', 'meeting_link',
    'street', 'street_number', 'complement', 'neighborhood', 'city', 'state', 'cep', 'google_maps_link',
)

VALID_STAGES = frozenset(s.value for s in LeadStage)


def _clean(field: str, value):
    """Normalize one incoming lead field."""
    if field == 'whatsapp':
        return only_digits(value)
    if field == 'instagram':
        return (value or '').strip().lstrip('@')
    if field == 'stage':
        if value not in VALID_STAGES:
            raise BusinessLogicError(f'Etapa do funil inválida: {value}')
        return value
    if field == 'stars':
        stars = int(value)
        if stars < 1 or stars > 5:
            raise BusinessLogicError('Estrelas devem estar entre 1 e 5')
        return stars
    if field == 'followers':
        return int(value or 0)
    if field == 'meeting_date':
        if not value:
            return None
        try:
            return datetime.strptime(str(value)[:10], '%Y-%m-%d').date()
        except ValueError:
            raise BusinessLogicError(f'Data inválida: {value}')
    if isinstance(value, str):
        value = value.strip()
        return value or None
    return value


def get_lead(session, organization_id: int, lead_id) -> Lead:
    lead = session.query(Lead).filter_by(id=lead_id, organization_id=organization_id).first()
    if not lead:
        raise NotFoundError('Lead não encontrado')
    return lead


def create_lead(session, organization_id: int, user_id: Optional[int], data: Dict[str, Any]) -> Lead:
    """Create a lead; only the name is required."""
    name = (data.get('name') or '').strip()
    if not name:
        raise BusinessLogicError('Nome do lead é obrigatório')

    values = {'stage': LeadStage.PROSPECT.value, 'stars': 3, 'whatsapp': '', 'instagram': ''}
    for field in EDITABLE_FIELDS:
        if data.get(field) not in (None, ''):
            values[field] = _clean(field, data[field])
    values['name'] = name

    try:
        lead = Lead(organization_id=organization_id, created_by=user_id, **values)
        session.add(lead)
        session.commit()
    except Exception:
        session.rollback()
        raise

    logger.info(f"[LEADS] Lead {lead.id} created (org {organization_id})")
    return lead


def update_lead(session, organization_id: int, lead_id, data: Dict[str, Any]) -> Lead:
    """Update the given fields of a lead; unknown keys are ignored."""
    lead = get_lead(session, organization_id, lead_id)
    try:
        for field in EDITABLE_FIELDS:
            if field not in data or data[field] is None:
                continue
            value = _clean(field, data[field])
            if field == 'name' and not value:
                raise BusinessLogicError('Nome do lead é obrigatório')
            setattr(lead, field, value)
        session.commit()
    except Exception:
        session.rollback()
        raise
    return lead


def list_leads(session, organization_id: int, stage: Optional[str] = None,
               limit: int = 100, offset: int = 0) -> List[Lead]:
    query = session.query(Lead).filter(Lead.organization_id == organization_id)
    if stage:
        query = query.filter(Lead.stage == stage)
    return query.order_by(Lead.created_at.desc(), Lead.id.desc()).offset(offset).limit(limit).all()


def search_leads(session, organization_id: int, term: str, limit: int = 10) -> List[Lead]:
    """Case-insensitive match on name, instagram or specialty."""
    term = (term or '').strip()
    if not term:
        return []
    pattern = f"%{term.lstrip('@')}%"
    return session.query(Lead).filter(
        Lead.organization_id == organization_id,
        or_(Lead.name.ilike(pattern), Lead.instagram.ilike(pattern), Lead.specialty.ilike(pattern)),
    ).order_by(Lead.name).limit(limit).all()


def find_similar_leads(session, organization_id: int, name: Optional[str] = None,
                       instagram: Optional[str] = None, limit: int = 5) -> List[Lead]:
    """Leads that look like the one about to be created."""
    if not name and not instagram:
        return []
    query = session.query(Lead).filter(Lead.organization_id == organization_id)
    if name:
        query = query.filter(Lead.name.ilike(f"%{name.strip()}%"))
    if instagram:
        query = query.filter(Lead.instagram.ilike(f"%{instagram.strip().lstrip('@').lower()}%"))
    return query.limit(limit).all()
