"""Lead model - prospects and customers tracked through the sales funnel."""
import enum
from sqlalchemy import Column, String, Integer, Text, Date, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from crm.database import Base, IdType


class LeadStage(str, enum.Enum):
    """Funnel stages."""
    PROSPECT = 'prospect'
    CONTACTED = 'contacted'
    CONVINCING = 'convincing'
    SCHEDULED = 'scheduled'
    POSITIVE = 'positive'
    WAITING_PAYMENT = 'waiting_payment'
    SUCCESS = 'success'
    TRASH = 'trash'
    CLOUD = 'cloud'


STAGE_LABELS = {
    LeadStage.PROSPECT.value: 'Prospectando / Aguardando resposta',
    LeadStage.CONTACTED.value: 'Cliente nos chamou',
    LeadStage.CONVINCING.value: 'Convencendo a marcar call',
    LeadStage.SCHEDULED.value: 'Call agendada',
    LeadStage.POSITIVE.value: 'Call feita positiva',
    LeadStage.WAITING_PAYMENT.value: 'Aguardando pagamento',
    LeadStage.SUCCESS.value: 'PAGO - SUCESSO!',
    LeadStage.TRASH.value: 'Não tem interesse',
    LeadStage.CLOUD.value: 'Não está na hora ainda',
}


class Lead(Base):
    """Lead (cliente / prospect)."""

    __tablename__ = 'lead'

    id = Column(IdType, primary_key=True, autoincrement=True)
    organization_id = Column(IdType, ForeignKey('organization.id'), nullable=False, index=True)
    name = Column(String(200), nullable=False)
    whatsapp = Column(String(20), nullable=False, default='')
    instagram = Column(String(100), nullable=False, default='')
    email = Column(String(255), nullable=True)
    specialty = Column(String(200), nullable=True)
    followers = Column(Integer, nullable=False, default=0)
    stage = Column(String(30), nullable=False, default=LeadStage.PROSPECT.value)
    stars = Column(Integer, nullable=False, default=3)
    assigned_to = Column(String(200), nullable=True)
    lead_source = Column(String(100), nullable=True)
    observations = Column(Text, nullable=True)

    meeting_date = Column(Date, nullable=True)
    meeting_time = Column(String(10), nullable=True)
    meeting_link = Column(String(500), nullable=True)

    # Delivery address
    street = Column(String(255), nullable=True)
    street_number = Column(String(20), nullable=True)
    complement = Column(String(100), nullable=True)
    neighborhood = Column(String(100), nullable=True)
    city = Column(String(100), nullable=True)
    state = Column(String(2), nullable=True)
    cep = Column(String(9), nullable=True)
    google_maps_link = Column(String(500), nullable=True)

    created_by = Column(IdType, ForeignKey('app_user.id'), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    # Relationships
    sales = relationship('Sale', back_populates='lead')

    @property
    def stage_label(self):
        return STAGE_LABELS.get(self.stage, self.stage)

    def __repr__(self):
        return f"<Lead(id={self.id}, name='{self.name}', stage='{self.stage}')>"
