"""Models package - exports all SQLAlchemy models."""
# Tenancy and users
from crm.models.organization import Organization
from crm.models.app_user import AppUser
from crm.models.organization_member import OrganizationMember, MemberRole

# Catalog
from crm.models.lead import Lead, LeadStage, STAGE_LABELS
from crm.models.product import Product, ProductQuestion, MANIPULADO_CATEGORY, KIT_CATEGORIES
from crm.models.product_price_kit import ProductPriceKit, PriceTier
from crm.models.kit_rejection import KitRejection
from crm.models.discount_authorization import DiscountAuthorization

# Settings
from crm.models.delivery import DeliveryRegion, ShippingCarrier, DeliveryReturnReason
from crm.models.payment_method import (
    PaymentMethod, PaymentMethodFee, PaymentCategory, PaymentTiming,
    InstallmentFlow, TransactionType, PAYMENT_CATEGORY_LABELS
)
from crm.models.onboarding_data import OnboardingData

# Sales
from crm.models.sale import Sale, SaleStatus, DeliveryStatus, DeliveryType, DeliveryShift, DiscountType
from crm.models.sale_item import SaleItem
from crm.models.sale_status_history import SaleStatusHistory
from crm.models.sale_change_log import SaleChangeLog, SaleChangeType

# Stock
from crm.models.stock_movement import StockMovement, StockMovementType
from crm.models.stock_operation import StockOperation, StockOperationType, StockOperationStatus

__all__ = [
    'Organization', 'AppUser', 'OrganizationMember', 'MemberRole',
    'Lead', 'LeadStage', 'STAGE_LABELS',
    'Product', 'ProductQuestion', 'MANIPULADO_CATEGORY', 'KIT_CATEGORIES',
    'ProductPriceKit', 'PriceTier', 'KitRejection', 'DiscountAuthorization',
    'DeliveryRegion', 'ShippingCarrier', 'DeliveryReturnReason',
    'PaymentMethod', 'PaymentMethodFee', 'PaymentCategory', 'PaymentTiming',
    'InstallmentFlow', 'TransactionType', 'PAYMENT_CATEGORY_LABELS',
    'OnboardingData',
    'Sale', 'SaleStatus', 'DeliveryStatus', 'DeliveryType', 'DeliveryShift', 'DiscountType',
    'SaleItem', 'SaleStatusHistory', 'SaleChangeLog', 'SaleChangeType',
    'StockMovement', 'StockMovementType',
    'StockOperation', 'StockOperationType', 'StockOperationStatus',
]
