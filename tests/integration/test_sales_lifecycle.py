"""
Integration tests for the sale lifecycle.
Covers creation, every status transition, stock effects, history and edits.
"""
from datetime import date

import pytest

from crm.exceptions import (
    AuthorizationRequiredError, BusinessLogicError, InvalidTransitionError, NotFoundError, UnauthorizedError
)
from crm.models import (
    DeliveryReturnReason, DiscountAuthorization, Sale, SaleChangeLog, SaleStatusHistory,
    StockMovement, StockOperation
)
from crm.services.price_authorization_service import grant_authorization
from crm.services.sales_service import (
    create_sale, delete_sale, list_change_log, list_lead_sales, list_my_deliveries, update_sale
)


def kit_item(product, position=1, **extra):
    item = {'product_id': product.id, 'kit_id': product.price_kits[position].id, 'tier': 'regular'}
    item.update(extra)
    return item


@pytest.fixture(scope='function')
def draft_sale(session, organization1, seller1, lead1, kit_product):
    """Draft sale of the 3-unit kit at regular price."""
    return create_sale(session, organization1.id, seller1.id, {
        'lead_id': lead1.id,
        'items': [kit_item(kit_product)],
    })


def advance(session, sale, user, *statuses, **data):
    for status in statuses:
        sale = update_sale(session, sale.organization_id, sale.id, user.id, dict(data, status=status))
    return sale


class TestCreateSale:
    """Sale creation."""

    def test_sale_is_created_in_draft(self, session, draft_sale, seller1):
        assert draft_sale.status == 'draft'
        assert draft_sale.romaneio_number == 1
        assert draft_sale.seller_user_id == seller1.id
        assert draft_sale.delivery_type == 'pickup'
        assert draft_sale.delivery_status == 'pending'
        assert draft_sale.payment_status == 'not_paid'

    def test_item_pricing_and_commission(self, draft_sale):
        item = draft_sale.items[0]
        assert item.quantity == 3
        assert item.unit_price_cents == 25000
        assert item.total_cents == 75000
        assert item.commission_cents == 7500
        assert draft_sale.subtotal_cents == 75000
        assert draft_sale.total_cents == 75000

    def test_creation_reserves_stock(self, session, draft_sale, kit_product):
        assert kit_product.stock_quantity == 20
        assert kit_product.stock_reserved == 3
        assert kit_product.available_stock == 17

        operation = session.query(StockOperation).filter_by(sale_id=draft_sale.id).one()
        assert operation.operation == 'reserve'
        assert operation.status == 'applied'

        movement = session.query(StockMovement).filter_by(reference_id=draft_sale.id).one()
        assert movement.movement_type == 'reserve'
        assert movement.quantity == 3

    def test_initial_history_row(self, session, draft_sale):
        history = session.query(SaleStatusHistory).filter_by(sale_id=draft_sale.id).all()
        assert len(history) == 1
        assert history[0].previous_status is None
        assert history[0].new_status == 'draft'

    def test_romaneio_numbers_increase_per_organization(self, session, organization1, seller1, lead1,
                                                        kit_product, draft_sale):
        second = create_sale(session, organization1.id, seller1.id, {
            'lead_id': lead1.id, 'items': [kit_item(kit_product, position=0)],
        })
        assert second.romaneio_number == 2

    def test_sale_discount_and_shipping(self, session, organization1, seller1, lead1, kit_product):
        sale = create_sale(session, organization1.id, seller1.id, {
            'lead_id': lead1.id,
            'items': [kit_item(kit_product)],
            'discount_type': 'percentage',
            'discount_value': 10,
            'shipping_cost_cents': 1500,
        })
        assert sale.discount_cents == 7500
        assert sale.total_cents == 75000 - 7500 + 1500

    def test_sale_without_items_is_rejected(self, session, organization1, seller1, lead1):
        with pytest.raises(BusinessLogicError):
            create_sale(session, organization1.id, seller1.id, {'lead_id': lead1.id, 'items': []})

    def test_kit_product_requires_a_kit(self, session, organization1, seller1, lead1, kit_product):
        with pytest.raises(BusinessLogicError):
            create_sale(session, organization1.id, seller1.id, {
                'lead_id': lead1.id, 'items': [{'product_id': kit_product.id}],
            })
        assert session.query(Sale).count() == 0

    def test_legacy_product_item(self, session, organization1, seller1, lead1, legacy_product):
        sale = create_sale(session, organization1.id, seller1.id, {
            'lead_id': lead1.id, 'items': [{'product_id': legacy_product.id, 'option': '3'}],
        })
        assert sale.items[0].quantity == 3
        assert sale.items[0].unit_price_cents == 4500
        assert sale.total_cents == 13500
        # Untracked product: reservation is a no-op but still recorded
        assert session.query(StockOperation).filter_by(sale_id=sale.id).one().status == 'applied'


class TestMinimumPriceAuthorization:
    """Prices below the kit minimum need a manager code."""

    def test_below_minimum_without_code(self, session, organization1, seller1, lead1, kit_product):
        with pytest.raises(AuthorizationRequiredError) as exc:
            create_sale(session, organization1.id, seller1.id, {
                'lead_id': lead1.id,
                'items': [kit_item(kit_product, position=0, tier='custom', custom_price_cents=7000)],
            })
        assert exc.value.payload['total_cents'] == 7000
        assert session.query(Sale).count() == 0

    def test_manager_code_unlocks_the_price(self, session, organization1, seller1, manager1, lead1,
                                            kit_product):
        kit = kit_product.price_kits[0]
        authorization = grant_authorization(
            session, organization1.id, manager1.id, seller1.id, kit_product.id, 7000, kit_id=kit.id
        )
        assert authorization.minimum_price_cents == 8000
        assert authorization.discount_amount_cents == 1000

        sale = create_sale(session, organization1.id, seller1.id, {
            'lead_id': lead1.id,
            'items': [kit_item(kit_product, position=0, tier='custom', custom_price_cents=7000,
                               authorization_code=authorization.authorization_code)],
        })

        assert sale.total_cents == 7000
        assert sale.items[0].discount_authorization_id == authorization.id
        assert session.get(DiscountAuthorization, authorization.id).sale_id == sale.id

    def test_code_cannot_be_reused(self, session, organization1, seller1, manager1, lead1, kit_product):
        kit = kit_product.price_kits[0]
        authorization = grant_authorization(
            session, organization1.id, manager1.id, seller1.id, kit_product.id, 7000, kit_id=kit.id
        )
        item = kit_item(kit_product, position=0, tier='custom', custom_price_cents=7000,
                        authorization_code=authorization.authorization_code)
        create_sale(session, organization1.id, seller1.id, {'lead_id': lead1.id, 'items': [item]})

        with pytest.raises(AuthorizationRequiredError):
            create_sale(session, organization1.id, seller1.id, {'lead_id': lead1.id, 'items': [item]})

    def test_price_below_authorized_value(self, session, organization1, seller1, manager1, lead1,
                                          kit_product):
        kit = kit_product.price_kits[0]
        authorization = grant_authorization(
            session, organization1.id, manager1.id, seller1.id, kit_product.id, 7000, kit_id=kit.id
        )
        with pytest.raises(AuthorizationRequiredError):
            create_sale(session, organization1.id, seller1.id, {
                'lead_id': lead1.id,
                'items': [kit_item(kit_product, position=0, tier='custom', custom_price_cents=6000,
                                   authorization_code=authorization.authorization_code)],
            })

    def test_seller_cannot_authorize(self, session, organization1, seller1, kit_product):
        with pytest.raises(UnauthorizedError):
            grant_authorization(session, organization1.id, seller1.id, seller1.id, kit_product.id, 7000)


class TestTransitions:
    """Status changes and their side effects."""

    def test_full_happy_path(self, session, draft_sale, owner1, courier1, kit_product):
        sale = advance(session, draft_sale, owner1, 'pending_expedition')
        assert sale.expedition_validated_by == owner1.id
        assert sale.expedition_validated_at is not None

        sale = update_sale(session, sale.organization_id, sale.id, owner1.id, {
            'status': 'dispatched', 'assigned_delivery_user_id': courier1.id,
        })
        assert sale.dispatched_at is not None
        assert sale.assigned_delivery_user_id == courier1.id

        sale = advance(session, sale, courier1, 'delivered')
        assert sale.delivered_at is not None
        assert sale.delivery_status == 'delivered_normal'
        assert kit_product.stock_quantity == 17
        assert kit_product.stock_reserved == 0

        sale = advance(session, sale, owner1, 'payment_confirmed')
        assert sale.payment_confirmed_by == owner1.id
        assert sale.payment_status == 'paid'

        history = session.query(SaleStatusHistory).filter_by(sale_id=sale.id).order_by(SaleStatusHistory.id).all()
        assert [h.new_status for h in history] == [
            'draft', 'pending_expedition', 'dispatched', 'delivered', 'payment_confirmed'
        ]
        assert history[-1].previous_status == 'delivered'

    def test_delivery_outcome_is_recorded(self, session, draft_sale, owner1):
        sale = advance(session, draft_sale, owner1, 'pending_expedition', 'dispatched')
        sale = update_sale(session, sale.organization_id, sale.id, owner1.id, {
            'status': 'delivered', 'delivery_status': 'delivered_customer_absent',
        })
        assert sale.delivery_status == 'delivered_customer_absent'

    def test_invalid_transition(self, session, draft_sale, owner1):
        with pytest.raises(InvalidTransitionError):
            update_sale(session, draft_sale.organization_id, draft_sale.id, owner1.id, {'status': 'delivered'})

        sale = session.get(Sale, draft_sale.id)
        assert sale.status == 'draft'
        assert session.query(SaleStatusHistory).filter_by(sale_id=sale.id).count() == 1

    def test_unknown_status(self, session, draft_sale, owner1):
        with pytest.raises(BusinessLogicError):
            update_sale(session, draft_sale.organization_id, draft_sale.id, owner1.id, {'status': 'shipped'})

    def test_cancel_draft_releases_reservation(self, session, draft_sale, owner1, kit_product):
        advance(session, draft_sale, owner1, 'cancelled')
        assert kit_product.stock_reserved == 0
        assert kit_product.stock_quantity == 20

    def test_cancel_after_delivery_restores_stock(self, session, draft_sale, owner1, kit_product):
        sale = advance(session, draft_sale, owner1, 'pending_expedition', 'dispatched', 'delivered',
                       'payment_pending')
        assert kit_product.stock_quantity == 17

        advance(session, sale, owner1, 'cancelled')
        assert kit_product.stock_quantity == 20
        assert kit_product.stock_reserved == 0

    def test_cancelled_sale_is_final(self, session, draft_sale, owner1):
        sale = advance(session, draft_sale, owner1, 'cancelled')
        with pytest.raises(InvalidTransitionError):
            advance(session, sale, owner1, 'draft')

    def test_return_after_delivery_restores_and_reserves(self, session, organization1, draft_sale,
                                                         owner1, kit_product):
        reason = DeliveryReturnReason(organization_id=organization1.id, name='Cliente ausente')
        session.add(reason)
        session.commit()

        sale = advance(session, draft_sale, owner1, 'pending_expedition', 'dispatched', 'delivered')
        sale = update_sale(session, sale.organization_id, sale.id, owner1.id, {
            'status': 'returned', 'return_reason_id': reason.id, 'return_notes': 'Ninguém em casa',
        })

        assert sale.returned_by == owner1.id
        assert sale.return_reason_id == reason.id
        assert kit_product.stock_quantity == 20
        assert kit_product.stock_reserved == 3

        operations = session.query(StockOperation).filter_by(sale_id=sale.id).order_by(StockOperation.id).all()
        assert [o.operation for o in operations] == ['reserve', 'deduct', 'restore', 'reserve']

    def test_return_after_payment_confirmed(self, session, draft_sale, owner1, kit_product):
        sale = advance(session, draft_sale, owner1, 'pending_expedition', 'dispatched', 'delivered',
                       'payment_confirmed')
        assert kit_product.stock_quantity == 17

        sale = advance(session, sale, owner1, 'returned')

        assert sale.status == 'returned'
        assert sale.returned_by == owner1.id
        assert kit_product.stock_quantity == 20
        assert kit_product.stock_reserved == 3
        operations = session.query(StockOperation).filter_by(sale_id=sale.id).order_by(StockOperation.id).all()
        assert [(o.operation, o.status) for o in operations][-2:] == [('restore', 'applied'), ('reserve', 'applied')]

    def test_return_before_dispatch_keeps_reservation(self, session, draft_sale, owner1, kit_product):
        sale = advance(session, draft_sale, owner1, 'pending_expedition', 'returned')

        assert sale.status == 'returned'
        assert kit_product.stock_reserved == 3
        assert session.query(StockOperation).filter_by(sale_id=sale.id).count() == 1

    def test_reschedule_clears_delivery_fields(self, session, draft_sale, owner1, kit_product):
        sale = advance(session, draft_sale, owner1, 'pending_expedition', 'dispatched', 'returned')
        assert kit_product.stock_reserved == 3

        sale = update_sale(session, sale.organization_id, sale.id, owner1.id, {
            'status': 'draft', 'scheduled_delivery_date': '2024-05-20', 'scheduled_delivery_shift': 'afternoon',
        })

        assert sale.status == 'draft'
        assert sale.dispatched_at is None
        assert sale.returned_at is None
        assert sale.expedition_validated_at is None
        assert sale.delivery_status == 'pending'
        assert sale.scheduled_delivery_date == date(2024, 5, 20)
        assert sale.scheduled_delivery_shift == 'afternoon'
        # The reservation carried through the return is kept
        assert kit_product.stock_reserved == 3

    def test_back_to_draft_from_expedition(self, session, draft_sale, owner1):
        sale = advance(session, draft_sale, owner1, 'pending_expedition', 'draft')
        assert sale.expedition_validated_at is None
        assert sale.expedition_validated_by is None


class TestFieldEdits:
    """Non-status edits and the change log."""

    def test_discount_edit_recalculates_totals(self, session, draft_sale, owner1):
        sale = update_sale(session, draft_sale.organization_id, draft_sale.id, owner1.id, {
            'discount_type': 'fixed', 'discount_value': 5000,
        })
        assert sale.discount_cents == 5000
        assert sale.total_cents == 70000

        changes = list_change_log(session, sale.organization_id, sale.id)
        assert {c.field_name for c in changes} == {'discount_type', 'discount_value'}
        assert all(c.change_type == 'discount_changed' for c in changes)

    def test_money_is_frozen_after_dispatch(self, session, draft_sale, owner1):
        sale = advance(session, draft_sale, owner1, 'pending_expedition', 'dispatched')
        with pytest.raises(BusinessLogicError):
            update_sale(session, sale.organization_id, sale.id, owner1.id, {'shipping_cost_cents': 2000})

    def test_delivery_edit_is_logged(self, session, draft_sale, owner1):
        update_sale(session, draft_sale.organization_id, draft_sale.id, owner1.id, {
            'delivery_type': 'motoboy', 'delivery_notes': 'Portão azul',
        })
        changes = session.query(SaleChangeLog).filter_by(sale_id=draft_sale.id).all()
        assert {c.field_name for c in changes} == {'delivery_type', 'delivery_notes'}
        assert all(c.change_type == 'delivery_changed' for c in changes)

    def test_courier_must_belong_to_organization(self, session, draft_sale, owner1, owner2):
        with pytest.raises(BusinessLogicError):
            update_sale(session, draft_sale.organization_id, draft_sale.id, owner1.id, {
                'assigned_delivery_user_id': owner2.id,
            })


class TestListingsAndDelete:
    """Courier and lead listings, admin delete."""

    def test_my_deliveries(self, session, draft_sale, owner1, courier1):
        assert list_my_deliveries(session, draft_sale.organization_id, courier1.id) == []

        advance(session, draft_sale, owner1, 'pending_expedition')
        update_sale(session, draft_sale.organization_id, draft_sale.id, owner1.id, {
            'status': 'dispatched', 'assigned_delivery_user_id': courier1.id,
        })
        deliveries = list_my_deliveries(session, draft_sale.organization_id, courier1.id)
        assert [s.id for s in deliveries] == [draft_sale.id]

    def test_lead_sales(self, session, draft_sale, lead1):
        assert [s.id for s in list_lead_sales(session, draft_sale.organization_id, lead1.id)] == [draft_sale.id]

    def test_delete_releases_stock(self, session, draft_sale, owner1, kit_product):
        sale_id = draft_sale.id
        delete_sale(session, draft_sale.organization_id, sale_id, owner1.id)

        assert session.get(Sale, sale_id) is None
        assert session.query(StockOperation).filter_by(sale_id=sale_id).count() == 0
        assert session.query(SaleStatusHistory).filter_by(sale_id=sale_id).count() == 0
        assert kit_product.stock_reserved == 0

    def test_other_organization_cannot_touch_sale(self, session, draft_sale, organization2, owner2):
        with pytest.raises(NotFoundError):
            update_sale(session, organization2.id, draft_sale.id, owner2.id, {'status': 'cancelled'})
