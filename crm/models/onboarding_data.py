"""Onboarding data model."""
from sqlalchemy import Column, String, Text, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.sql import func
from crm.database import Base, IdType


class OnboardingData(Base):
    """Answers collected the first time a user enters an organization."""

    __tablename__ = 'onboarding_data'
    __table_args__ = (
        UniqueConstraint('organization_id', 'user_id', name='uq_onboarding_org_user'),
    )

    id = Column(IdType, primary_key=True, autoincrement=True)
    organization_id = Column(IdType, ForeignKey('organization.id'), nullable=False)
    user_id = Column(IdType, ForeignKey('app_user.id'), nullable=False)
    cnpj = Column(String(18), nullable=True)
    company_site = Column(String(255), nullable=True)
    crm_usage_intent = Column(String(100), nullable=True)
    business_description = Column(Text, nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    def __repr__(self):
        return f"<OnboardingData(organization_id={self.organization_id}, user_id={self.user_id})>"
