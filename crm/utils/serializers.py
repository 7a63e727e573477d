"""JSON representations of models for the API blueprints."""
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, Optional

from crm.services.sale_lifecycle import get_delivery_status_label, get_status_label


def _iso(value) -> Optional[str]:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


def _number(value) -> Optional[float]:
    if value is None:
        return None
    if isinstance(value, Decimal):
        return float(value)
    return value


def sale_item_to_dict(item) -> Dict[str, Any]:
    return {
        'id': item.id,
        'product_id': item.product_id,
        'product_name': item.product_name,
        'quantity': item.quantity,
        'unit_price_cents': item.unit_price_cents,
        'discount_cents': item.discount_cents,
        'total_cents': item.total_cents,
        'requisition_number': item.requisition_number,
        'commission_percentage': _number(item.commission_percentage),
        'commission_cents': item.commission_cents,
        'discount_authorization_id': item.discount_authorization_id,
    }


def sale_to_dict(sale, include_items: bool = True) -> Dict[str, Any]:
    data = {
        'id': sale.id,
        'romaneio_number': sale.romaneio_number,
        'lead_id': sale.lead_id,
        'lead_name': sale.lead.name if sale.lead else None,
        'seller_user_id': sale.seller_user_id,
        'created_by': sale.created_by,
        'status': sale.status,
        'status_label': get_status_label(sale.status),
        'subtotal_cents': sale.subtotal_cents,
        'discount_type': sale.discount_type,
        'discount_value': _number(sale.discount_value),
        'discount_cents': sale.discount_cents,
        'shipping_cost_cents': sale.shipping_cost_cents,
        'total_cents': sale.total_cents,
        'delivery_type': sale.delivery_type,
        'delivery_status': sale.delivery_status,
        'delivery_status_label': get_delivery_status_label(sale.delivery_status),
        'delivery_region_id': sale.delivery_region_id,
        'shipping_carrier_id': sale.shipping_carrier_id,
        'scheduled_delivery_date': _iso(sale.scheduled_delivery_date),
        'scheduled_delivery_shift': sale.scheduled_delivery_shift,
        'assigned_delivery_user_id': sale.assigned_delivery_user_id,
        'delivery_notes': sale.delivery_notes,
        'payment_method_id': sale.payment_method_id,
        'payment_installments': sale.payment_installments,
        'payment_status': sale.payment_status,
        'payment_notes': sale.payment_notes,
        'payment_proof_url': sale.payment_proof_url,
        'invoice_pdf_url': sale.invoice_pdf_url,
        'invoice_xml_url': sale.invoice_xml_url,
        'expedition_validated_at': _iso(sale.expedition_validated_at),
        'dispatched_at': _iso(sale.dispatched_at),
        'delivered_at': _iso(sale.delivered_at),
        'payment_confirmed_at': _iso(sale.payment_confirmed_at),
        'returned_at': _iso(sale.returned_at),
        'return_reason_id': sale.return_reason_id,
        'return_notes': sale.return_notes,
        'created_at': _iso(sale.created_at),
    }
    if include_items:
        data['items'] = [sale_item_to_dict(i) for i in sale.items]
    return data


def status_history_to_dict(entry) -> Dict[str, Any]:
    return {
        'previous_status': entry.previous_status,
        'new_status': entry.new_status,
        'changed_by': entry.changed_by,
        'notes': entry.notes,
        'created_at': _iso(entry.created_at),
    }


def change_log_to_dict(entry) -> Dict[str, Any]:
    return {
        'change_type': entry.change_type,
        'field_name': entry.field_name,
        'old_value': entry.old_value,
        'new_value': entry.new_value,
        'changed_by': entry.changed_by,
        'created_at': _iso(entry.created_at),
    }


def kit_to_dict(kit, visible_tiers=None) -> Dict[str, Any]:
    data = {
        'id': kit.id,
        'quantity': kit.quantity,
        'position': kit.position,
        'points': kit.points,
        'regular_price_cents': kit.regular_price_cents,
        'promotional_price_cents': kit.promotional_price_cents,
        'promotional_price_2_cents': kit.promotional_price_2_cents,
        'minimum_price_cents': kit.minimum_price_cents,
    }
    if visible_tiers is not None:
        # Hide price points the seller has not revealed yet
        if 'promotional_2' not in visible_tiers:
            data['promotional_price_2_cents'] = None
        if 'minimum' not in visible_tiers:
            data['minimum_price_cents'] = None
    return data


def product_to_dict(product, include_kits: bool = True) -> Dict[str, Any]:
    data = {
        'id': product.id,
        'name': product.name,
        'description': product.description,
        'category': product.category,
        'is_active': product.is_active,
        'price_1_unit': product.price_1_unit,
        'price_3_units': product.price_3_units,
        'price_6_units': product.price_6_units,
        'price_12_units': product.price_12_units,
        'minimum_price': product.minimum_price,
        'track_stock': product.track_stock,
        'stock_quantity': product.stock_quantity,
        'stock_reserved': product.stock_reserved,
        'available_stock': product.available_stock,
        'is_low_stock': product.is_low_stock,
        'crosssell_ids': product.crosssell_ids,
    }
    if include_kits:
        data['kits'] = [kit_to_dict(k) for k in product.price_kits]
    return data


def lead_to_dict(lead) -> Dict[str, Any]:
    return {
        'id': lead.id,
        'name': lead.name,
        'whatsapp': lead.whatsapp,
        'instagram': lead.instagram,
        'email': lead.email,
        'specialty': lead.specialty,
        'followers': lead.followers,
        'stage': lead.stage,
        'stage_label': lead.stage_label,
        'stars': lead.stars,
        'assigned_to': lead.assigned_to,
        'lead_source': lead.lead_source,
        'observations': lead.observations,
        'meeting_date': _iso(lead.meeting_date),
        'meeting_time': lead.meeting_time,
        'meeting_link': lead.meeting_link,
        'street': lead.street,
        'street_number': lead.street_number,
        'complement': lead.complement,
        'neighborhood': lead.neighborhood,
        'city': lead.city,
        'state': lead.state,
        'cep': lead.cep,
        'google_maps_link': lead.google_maps_link,
        'created_at': _iso(lead.created_at),
    }


def rejection_to_dict(rejection) -> Dict[str, Any]:
    return {
        'id': rejection.id,
        'product_id': rejection.product_id,
        'kit_id': rejection.kit_id,
        'kit_quantity': rejection.kit_quantity,
        'kit_price_cents': rejection.kit_price_cents,
        'rejection_reason': rejection.rejection_reason,
        'rejected_by': rejection.rejected_by,
        'created_at': _iso(rejection.created_at),
    }


def payment_method_to_dict(method) -> Dict[str, Any]:
    return {
        'id': method.id,
        'name': method.name,
        'category': method.category,
        'category_label': method.category_label,
        'payment_timing': method.payment_timing,
        'installment_flow': method.installment_flow,
        'max_installments': method.max_installments,
        'min_installment_value_cents': method.min_installment_value_cents,
        'fee_percentage': _number(method.fee_percentage),
        'fee_fixed_cents': method.fee_fixed_cents,
        'settlement_days': method.settlement_days,
        'requires_proof': method.requires_proof,
        'requires_transaction_data': method.requires_transaction_data,
        'is_active': method.is_active,
        'fees': [
            {
                'transaction_type': f.transaction_type,
                'fee_percentage': _number(f.fee_percentage),
                'fee_fixed_cents': f.fee_fixed_cents,
                'settlement_days': f.settlement_days,
                'is_enabled': f.is_enabled,
            }
            for f in method.fees
        ],
    }


def movement_to_dict(movement) -> Dict[str, Any]:
    return {
        'movement_type': movement.movement_type,
        'quantity': movement.quantity,
        'previous_quantity': movement.previous_quantity,
        'new_quantity': movement.new_quantity,
        'reference_type': movement.reference_type,
        'reference_id': movement.reference_id,
        'notes': movement.notes,
        'created_at': _iso(movement.created_at),
    }


def stock_operation_to_dict(record) -> Dict[str, Any]:
    return {
        'id': record.id,
        'sale_id': record.sale_id,
        'operation': record.operation,
        'status': record.status,
        'error_message': record.error_message,
        'attempts': record.attempts,
    }
