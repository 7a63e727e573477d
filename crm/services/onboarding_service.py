"""Onboarding questionnaire shown on a user's first access to an organization."""
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from crm.models import OnboardingData

FIELDS = ('cnpj', 'company_site', 'crm_usage_intent', 'business_description')


def get_onboarding(session, organization_id: int, user_id: int) -> Optional[OnboardingData]:
    return session.query(OnboardingData).filter_by(
        organization_id=organization_id, user_id=user_id
    ).first()


def has_onboarding_completed(session, organization_id: int, user_id: int) -> bool:
    record = get_onboarding(session, organization_id, user_id)
    return record is not None and record.completed_at is not None


def save_onboarding_data(session, organization_id: int, user_id: int,
                         data: Optional[Dict[str, Any]] = None) -> OnboardingData:
    """Upsert the answers and mark onboarding as completed; empty data means skipped."""
    data = data or {}
    try:
        record = get_onboarding(session, organization_id, user_id)
        if record is None:
            record = OnboardingData(organization_id=organization_id, user_id=user_id)
            session.add(record)
        for field in FIELDS:
            if field in data:
                value = data[field]
                record_value = value.strip() if isinstance(value, str) else value
                setattr(record, field, record_value or None)
        record.completed_at = datetime.now(timezone.utc)
        session.commit()
    except Exception:
        session.rollback()
        raise
    return record
