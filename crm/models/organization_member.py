"""OrganizationMember model - links users to organizations with a role."""
import enum
from sqlalchemy import Column, String, Boolean, DateTime, Numeric, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from crm.database import Base, IdType


class MemberRole(str, enum.Enum):
    """Roles within an organization."""
    OWNER = 'owner'
    ADMIN = 'admin'
    MANAGER = 'manager'
    SELLER = 'seller'
    SHIPPING = 'shipping'
    FINANCE = 'finance'
    DELIVERY = 'delivery'


class OrganizationMember(Base):
    """Membership of a user in an organization."""

    __tablename__ = 'organization_member'
    __table_args__ = (
        UniqueConstraint('organization_id', 'user_id', name='uq_member_org_user'),
    )

    id = Column(IdType, primary_key=True, autoincrement=True)
    organization_id = Column(IdType, ForeignKey('organization.id'), nullable=False, index=True)
    user_id = Column(IdType, ForeignKey('app_user.id'), nullable=False, index=True)
    role = Column(String(20), nullable=False, default=MemberRole.SELLER.value)
    # Seller default commission, applied whenever a price tier has no custom commission
    default_commission_percentage = Column(Numeric(5, 2), nullable=False, default=0)
    active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    # Relationships
    user = relationship('AppUser', back_populates='memberships')
    organization = relationship('Organization', back_populates='members')

    def is_admin(self):
        """Owners and admins share the admin-only surface."""
        return self.role in (MemberRole.OWNER.value, MemberRole.ADMIN.value)

    def __repr__(self):
        return f"<OrganizationMember(user_id={self.user_id}, organization_id={self.organization_id}, role='{self.role}')>"
