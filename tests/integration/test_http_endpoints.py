"""
Integration tests for the JSON API.
Exercises each blueprint through the Flask test client.
"""
from io import BytesIO
from unittest.mock import patch

import pytest

from crm.models import AppUser, Lead, Product, Sale
from crm.services.sales_service import create_sale


def kit_payload(product, position=1):
    return {'product_id': product.id, 'kit_id': product.price_kits[position].id, 'tier': 'regular'}


@pytest.fixture(scope='function')
def sale1(session, organization1, seller1, lead1, kit_product):
    return create_sale(session, organization1.id, seller1.id, {
        'lead_id': lead1.id, 'items': [kit_payload(kit_product)],
    })


class TestAuth:
    """Login, logout and session introspection."""

    def test_login_success(self, client, owner1, organization1):
        email, organization1_id = owner1.email, organization1.id

        response = client.post('/auth/login', json={'email': email.upper(), 'password': 'password123'})

        assert response.status_code == 200
        data = response.get_json()
        assert data['organization_id'] == organization1_id
        assert data['onboarding_completed'] is False
        assert data['organizations'][0]['role'] == 'owner'
        with client.session_transaction() as sess:
            assert sess['organization_id'] == organization1_id

    def test_wrong_password(self, client, owner1):
        response = client.post('/auth/login', json={'email': owner1.email, 'password': 'errada'})
        assert response.status_code == 401

    def test_missing_fields(self, client):
        response = client.post('/auth/login', json={'email': 'x@test.com'})
        assert response.status_code == 400
        assert response.get_json()['status'] == 'error'

    def test_user_without_membership(self, session, client):
        user = AppUser(email='sem-org@test.com', first_name='Sem', active=True)
        user.set_password('password123')
        session.add(user)
        session.commit()

        response = client.post('/auth/login', json={'email': 'sem-org@test.com', 'password': 'password123'})
        assert response.status_code == 403

    def test_me_and_logout(self, authenticated_client, owner1):
        owner1_id = owner1.id

        data = authenticated_client.get('/auth/me').get_json()
        assert data['user']['id'] == owner1_id
        assert data['role'] == 'owner'

        assert authenticated_client.post('/auth/logout').status_code == 200
        assert authenticated_client.get('/auth/me').status_code == 401

    def test_login_required(self, client):
        response = client.get('/sales/')
        assert response.status_code == 401
        assert response.get_json()['message'] == 'Faça login para continuar'


class TestSalesApi:
    """Sales blueprint."""

    def test_create_sale(self, login, seller1, organization1, lead1, kit_product):
        client = login(seller1.id, organization1.id)
        payload = {'lead_id': lead1.id, 'items': [kit_payload(kit_product)]}

        response = client.post('/sales/', json=payload)

        assert response.status_code == 201
        sale = response.get_json()['sale']
        assert sale['status'] == 'draft'
        assert sale['total_cents'] == 75000
        assert sale['items'][0]['quantity'] == 3

    def test_price_preview_saves_nothing(self, session, login, seller1, organization1, kit_product):
        client = login(seller1.id, organization1.id)
        payload = {
            'items': [kit_payload(kit_product)],
            'discount_type': 'fixed', 'discount_value': 5000, 'shipping_cost_cents': 1000,
        }

        data = client.post('/sales/price-preview', json=payload).get_json()

        assert data['items'][0]['total_cents'] == 75000
        assert data['items'][0]['commission_cents'] == 7500
        assert data['subtotal_cents'] == 75000
        assert data['discount_cents'] == 5000
        assert data['total_cents'] == 71000
        assert session.query(Sale).count() == 0

    def test_seller_cannot_validate_expedition(self, login, seller1, organization1, sale1):
        client = login(seller1.id, organization1.id)
        sale_id = sale1.id

        response = client.patch(f'/sales/{sale_id}', json={'status': 'pending_expedition'})
        assert response.status_code == 403

    def test_owner_moves_sale_to_delivered(self, authenticated_client, sale1):
        sale_id = sale1.id
        for status in ('pending_expedition', 'dispatched', 'delivered'):
            response = authenticated_client.patch(f'/sales/{sale_id}', json={'status': status})
            assert response.status_code == 200
            assert response.get_json()['sale']['status'] == status

        history = authenticated_client.get(f'/sales/{sale_id}/history').get_json()['history']
        assert len(history) == 4

        sale = authenticated_client.get(f'/sales/{sale_id}').get_json()['sale']
        assert [op['operation'] for op in sale['stock_operations']] == ['reserve', 'deduct']

    def test_invalid_transition(self, authenticated_client, sale1):
        sale_id = sale1.id
        response = authenticated_client.patch(f'/sales/{sale_id}', json={'status': 'delivered'})

        assert response.status_code == 409
        assert response.get_json()['from_status'] == 'draft'

    def test_field_edit_is_logged(self, login, seller1, organization1, sale1):
        client = login(seller1.id, organization1.id)
        sale_id = sale1.id

        response = client.patch(f'/sales/{sale_id}', json={'delivery_notes': 'Portão azul'})
        assert response.status_code == 200

        changes = client.get(f'/sales/{sale_id}/changes').get_json()['changes']
        assert any(c['field_name'] == 'delivery_notes' and c['new_value'] == 'Portão azul' for c in changes)

    def test_finance_cannot_set_delivery_outcome(self, session, login, make_member, organization1, sale1):
        finance = make_member(organization1, role='finance')
        client = login(finance.id, organization1.id)
        sale_id = sale1.id

        response = client.patch(f'/sales/{sale_id}', json={'delivery_status': 'delivered_customer_absent'})

        assert response.status_code == 403
        assert session.get(Sale, sale_id).delivery_status == 'pending'

    def test_courier_sets_delivery_outcome(self, session, login, courier1, organization1, sale1):
        client = login(courier1.id, organization1.id)
        sale_id = sale1.id

        response = client.patch(f'/sales/{sale_id}', json={'delivery_status': 'delivered_customer_absent'})

        assert response.status_code == 200
        assert response.get_json()['sale']['delivery_status'] == 'delivered_customer_absent'

    def test_romaneio_json(self, authenticated_client, sale1):
        sale_id = sale1.id
        document = authenticated_client.get(f'/sales/{sale_id}/romaneio').get_json()['romaneio']

        assert document['romaneio_number'] == 1
        assert document['client_name'] == 'Dr. João Silva'
        assert document['seller_name'] == 'Bruno Teste'
        assert document['total'] == 'R$ 750,00'
        assert document['sale_qr_payload'] == f'https://crm.example.com/vendas/{sale_id}'

    def test_romaneio_pdf(self, authenticated_client, sale1):
        sale_id = sale1.id
        response = authenticated_client.get(f'/sales/{sale_id}/romaneio.pdf')

        assert response.status_code == 200
        assert response.mimetype == 'application/pdf'
        assert response.data.startswith(b'%PDF')
        assert 'romaneio_1.pdf' in response.headers['Content-Disposition']

    def test_payment_proof_upload(self, login, seller1, organization1, sale1):
        client = login(seller1.id, organization1.id)
        sale_id, organization1_id = sale1.id, organization1.id

        with patch('crm.services.storage_service.get_storage_service') as get_storage:
            storage = get_storage.return_value
            storage.upload_sale_document.return_value = 'https://cdn.example.com/comprovante.pdf'
            response = client.post(
                f'/sales/{sale_id}/payment-proof',
                data={'file': (BytesIO(b'%PDF-1.4 comprovante'), 'comprovante.pdf')},
                content_type='multipart/form-data',
            )

        assert response.status_code == 200
        assert response.get_json()['payment_proof_url'] == 'https://cdn.example.com/comprovante.pdf'
        _, organization_arg, sale_arg, kind = storage.upload_sale_document.call_args[0]
        assert (organization_arg, sale_arg, kind) == (organization1_id, sale_id, 'payment-proof')

    def test_seller_cannot_delete(self, login, seller1, organization1, sale1):
        client = login(seller1.id, organization1.id)
        sale_id = sale1.id
        assert client.delete(f'/sales/{sale_id}').status_code == 403

    def test_owner_deletes_sale(self, session, authenticated_client, sale1, kit_product):
        sale_id = sale1.id

        assert authenticated_client.delete(f'/sales/{sale_id}').status_code == 200
        assert session.get(Sale, sale_id) is None
        assert kit_product.stock_reserved == 0

    def test_courier_deliveries(self, session, login, owner1, courier1, organization1, sale1):
        sale1.assigned_delivery_user_id = courier1.id
        sale1.status = 'dispatched'
        session.commit()
        client = login(courier1.id, organization1.id)
        sale_id = sale1.id

        sales = client.get('/sales/my-deliveries').get_json()['sales']
        assert [s['id'] for s in sales] == [sale_id]


class TestProductsApi:
    """Catalog, stock and price authorizations."""

    def test_create_product_with_kits(self, authenticated_client):
        response = authenticated_client.post('/products/', json={
            'name': 'Óleo Capilar',
            'category': 'print_on_demand',
            'kits': [
                {'quantity': 1, 'regular_price_cents': 5000, 'minimum_price_cents': 4000},
                {'quantity': 2, 'regular_price_cents': 9000},
            ],
            'questions': ['Qual o tipo de cabelo?', ' '],
        })

        assert response.status_code == 201
        product = response.get_json()['product']
        assert [(k['quantity'], k['position']) for k in product['kits']] == [(1, 0), (2, 1)]

        detail = authenticated_client.get(f"/products/{product['id']}").get_json()['product']
        assert detail['questions'] == ['Qual o tipo de cabelo?']

    def test_replace_kits(self, authenticated_client, kit_product):
        product_id = kit_product.id
        last_kit_id = kit_product.price_kits[2].id

        response = authenticated_client.put(f'/products/{product_id}', json={
            'kits': [{'id': last_kit_id, 'quantity': 6, 'regular_price_cents': 44000}],
        })

        kits = response.get_json()['product']['kits']
        assert [(k['id'], k['position'], k['regular_price_cents']) for k in kits] == [(last_kit_id, 0, 44000)]

    def test_kits_rejected_for_legacy_category(self, authenticated_client):
        response = authenticated_client.post('/products/', json={
            'name': 'Creme', 'category': 'outro', 'kits': [{'quantity': 1, 'regular_price_cents': 1000}],
        })
        assert response.status_code == 400

    def test_name_is_required(self, authenticated_client):
        assert authenticated_client.post('/products/', json={'category': 'outro'}).status_code == 400

    def test_stock_adjustment(self, authenticated_client, kit_product):
        product_id = kit_product.id

        response = authenticated_client.post(f'/products/{product_id}/stock',
                                             json={'quantity': 30, 'notes': 'Inventário'})
        assert response.status_code == 200
        assert response.get_json()['product']['stock_quantity'] == 30

        movements = authenticated_client.get(f'/products/{product_id}/movements').get_json()['movements']
        assert movements[0]['movement_type'] == 'adjust'
        assert movements[0]['new_quantity'] == 30

    def test_seller_cannot_edit_catalog(self, login, seller1, organization1, kit_product):
        client = login(seller1.id, organization1.id)
        product_id = kit_product.id
        assert client.put(f'/products/{product_id}', json={'name': 'X'}).status_code == 403
        assert client.get('/products/').status_code == 200

    def test_low_stock(self, session, authenticated_client, kit_product):
        kit_product.stock_quantity = 2
        session.commit()
        product_id = kit_product.id

        products = authenticated_client.get('/products/low-stock').get_json()['products']
        assert [p['id'] for p in products] == [product_id]

    def test_manager_authorizes_below_minimum(self, login, manager1, seller1, organization1, kit_product):
        client = login(manager1.id, organization1.id)
        product_id, kit_id, seller1_id = kit_product.id, kit_product.price_kits[0].id, seller1.id

        response = client.post(f'/products/{product_id}/authorizations', json={
            'seller_user_id': seller1_id, 'kit_id': kit_id, 'authorized_price_cents': 7000,
        })

        assert response.status_code == 201
        data = response.get_json()
        assert data['minimum_price_cents'] == 8000
        assert data['authorized_price_cents'] == 7000
        assert data['authorization_code']

    def test_seller_cannot_authorize(self, login, seller1, organization1, kit_product):
        client = login(seller1.id, organization1.id)
        product_id, kit_id, seller1_id = kit_product.id, kit_product.price_kits[0].id, seller1.id

        response = client.post(f'/products/{product_id}/authorizations', json={
            'seller_user_id': seller1_id, 'kit_id': kit_id, 'authorized_price_cents': 7000,
        })
        assert response.status_code == 403

    def test_failed_stock_operations_and_replay(self, session, authenticated_client, organization1, seller1,
                                                lead1, kit_product):
        kit_product.stock_quantity = 1
        session.commit()
        sale = create_sale(session, organization1.id, seller1.id, {
            'lead_id': lead1.id, 'items': [kit_payload(kit_product)],
        })
        sale_id, product_id = sale.id, kit_product.id

        operations = authenticated_client.get('/products/stock-operations/failed').get_json()['operations']
        assert [(o['sale_id'], o['operation']) for o in operations] == [(sale_id, 'reserve')]

        authenticated_client.post(f'/products/{product_id}/stock', json={'quantity': 10})
        response = authenticated_client.post('/products/stock-operations/replay')

        assert response.get_json() == {'status': 'ok', 'applied': 1, 'failed': 0, 'superseded': 0}
        assert session.get(Product, product_id).stock_reserved == 3


class TestLeadsApi:
    """Lead CRUD."""

    def test_create_update_and_search(self, session, authenticated_client):
        response = authenticated_client.post('/leads/', json={
            'name': 'Dra. Helena', 'instagram': '@drahelena', 'whatsapp': '(11) 99999-0000', 'stars': 4,
        })
        assert response.status_code == 201
        lead = response.get_json()['lead']
        assert lead['instagram'] == 'drahelena'
        assert lead['whatsapp'] == '11999990000'
        assert lead['stage'] == 'prospect'

        response = authenticated_client.patch(f"/leads/{lead['id']}", json={'stage': 'scheduled'})
        assert response.get_json()['lead']['stage'] == 'scheduled'

        found = authenticated_client.get('/leads/search?q=@drahelena').get_json()['leads']
        assert [l['id'] for l in found] == [lead['id']]

    def test_invalid_stars(self, authenticated_client, lead1):
        lead_id = lead1.id
        response = authenticated_client.patch(f'/leads/{lead_id}', json={'stars': 9})
        assert response.status_code == 400

    def test_filter_by_stage(self, session, authenticated_client, organization1, lead1):
        session.add(Lead(organization_id=organization1.id, name='Dr. Pedro', stage='success'))
        session.commit()

        leads = authenticated_client.get('/leads/?stage=success').get_json()['leads']
        assert [l['name'] for l in leads] == ['Dr. Pedro']


class TestPaymentMethodsApi:
    """Payment method settings and fee simulation."""

    def test_create_and_simulate_fee(self, authenticated_client):
        response = authenticated_client.post('/payment-methods/', json={
            'name': 'Maquininha',
            'category': 'card_machine',
            'payment_timing': 'installments',
            'max_installments': 6,
            'min_installment_value_cents': 5000,
            'fees': [{'transaction_type': 'debit', 'fee_percentage': 1.5, 'settlement_days': 1}],
        })
        assert response.status_code == 201
        method = response.get_json()['payment_method']
        assert method['fees'][0]['fee_percentage'] == 1.5

        data = authenticated_client.get(
            f"/payment-methods/{method['id']}/fee?amount_cents=10000&transaction_type=debit&date=2024-03-01"
        ).get_json()

        assert data['fee_cents'] == 150
        assert data['net_cents'] == 9850
        assert data['settlement_date'] == '2024-03-02'
        assert data['installment_options'] == [1, 2]

    def test_invalid_category(self, authenticated_client):
        response = authenticated_client.post('/payment-methods/', json={'name': 'X', 'category': 'barter'})
        assert response.status_code == 400

    def test_listing_hides_inactive(self, authenticated_client):
        authenticated_client.post('/payment-methods/', json={'name': 'Pix', 'category': 'pix'})
        authenticated_client.post('/payment-methods/', json={'name': 'Cheque', 'is_active': False})

        names = [m['name'] for m in authenticated_client.get('/payment-methods/').get_json()['payment_methods']]
        assert names == ['Pix']
        everything = authenticated_client.get('/payment-methods/?all=1').get_json()['payment_methods']
        assert len(everything) == 2


class TestOnboardingApi:
    """First-access questionnaire."""

    def test_submit_answers(self, authenticated_client):
        assert authenticated_client.get('/onboarding').get_json()['completed'] is False

        response = authenticated_client.post('/onboarding', json={'cnpj': ' 12.345.678/0001-90 '})
        assert response.get_json() == {'status': 'ok', 'completed': True}

        data = authenticated_client.get('/onboarding').get_json()
        assert data['completed'] is True
        assert data['answers']['cnpj'] == '12.345.678/0001-90'
        assert data['answers']['company_site'] is None


class TestWhatsappInstanceApi:
    """Z-API instance status for admins."""

    def test_status(self, authenticated_client):
        with patch('crm.blueprints.whatsapp.ZAPIClient') as zapi:
            zapi.return_value.get_status.return_value = {'connected': True}
            data = authenticated_client.get('/whatsapp/status').get_json()

        assert data['instance'] == {'connected': True}
        assert data['polling']['qr_max_attempts'] == 3

    def test_seller_cannot_see_status(self, login, seller1, organization1):
        client = login(seller1.id, organization1.id)
        assert client.get('/whatsapp/status').status_code == 403


class TestMetricsEndpoint:
    """Prometheus exposition."""

    def test_metrics(self, client):
        response = client.get('/metrics')
        assert response.status_code == 200
        assert b'crm_http_requests_total' in response.data
        assert b'crm_sale_transitions_total' in response.data
