"""
Critical integration tests for organization isolation.
These tests ensure that data is properly isolated between organizations.
"""
import pytest

from crm.exceptions import BusinessLogicError, NotFoundError
from crm.models import Lead, Product
from crm.services.lead_service import list_leads, search_leads
from crm.services.sales_service import create_sale, list_sales


@pytest.fixture(scope='function')
def sale_org2(session, organization2, owner2, lead2, product_org2):
    return create_sale(session, organization2.id, owner2.id, {
        'lead_id': lead2.id,
        'items': [{'product_id': product_org2.id, 'option': '1'}],
    })


class TestLeadIsolation:
    """Leads belong to one organization."""

    def test_listing_only_shows_own_leads(self, session, lead1, lead2):
        leads = list_leads(session, lead1.organization_id)
        assert [l.id for l in leads] == [lead1.id]

    def test_search_is_scoped(self, session, organization1, lead1, lead2):
        assert search_leads(session, organization1.id, 'Maria') == []
        assert [l.id for l in search_leads(session, organization1.id, 'joão')] == [lead1.id]

    def test_lead_api_hides_other_organization(self, authenticated_client, lead1, lead2):
        lead2_id = lead2.id

        response = authenticated_client.get('/leads/')
        assert response.status_code == 200
        assert [l['name'] for l in response.get_json()['leads']] == ['Dr. João Silva']

        assert authenticated_client.get(f'/leads/{lead2_id}').status_code == 404


class TestSaleIsolation:
    """Sales, leads and products cannot cross organizations."""

    def test_cannot_sell_to_other_organization_lead(self, session, organization1, seller1, lead2, kit_product):
        with pytest.raises(NotFoundError):
            create_sale(session, organization1.id, seller1.id, {
                'lead_id': lead2.id,
                'items': [{'product_id': kit_product.id, 'kit_id': kit_product.price_kits[0].id}],
            })

    def test_cannot_sell_other_organization_product(self, session, organization1, seller1, lead1,
                                                    product_org2):
        with pytest.raises(NotFoundError):
            create_sale(session, organization1.id, seller1.id, {
                'lead_id': lead1.id,
                'items': [{'product_id': product_org2.id, 'option': '1'}],
            })

    def test_seller_must_be_a_member(self, session, organization1, seller1, owner2, lead1, legacy_product):
        with pytest.raises(BusinessLogicError):
            create_sale(session, organization1.id, seller1.id, {
                'lead_id': lead1.id,
                'seller_user_id': owner2.id,
                'items': [{'product_id': legacy_product.id}],
            })

    def test_romaneio_numbers_are_per_organization(self, session, organization1, seller1, lead1,
                                                   legacy_product, sale_org2):
        sale_org1 = create_sale(session, organization1.id, seller1.id, {
            'lead_id': lead1.id, 'items': [{'product_id': legacy_product.id}],
        })
        assert sale_org1.romaneio_number == 1
        assert sale_org2.romaneio_number == 1

    def test_sale_listing_is_scoped(self, session, organization1, sale_org2):
        assert list_sales(session, organization1.id) == []
        assert [s.id for s in list_sales(session, sale_org2.organization_id)] == [sale_org2.id]

    def test_sale_api_hides_other_organization(self, authenticated_client, sale_org2):
        sale_id = sale_org2.id

        assert authenticated_client.get(f'/sales/{sale_id}').status_code == 404
        assert authenticated_client.get(f'/sales/{sale_id}/romaneio.pdf').status_code == 404
        response = authenticated_client.patch(f'/sales/{sale_id}', json={'status': 'cancelled'})
        assert response.status_code == 404
        assert authenticated_client.delete(f'/sales/{sale_id}').status_code == 404


class TestProductIsolation:
    """Catalog is per organization."""

    def test_product_api_hides_other_organization(self, authenticated_client, kit_product, product_org2):
        kit_product_id, product_org2_id = kit_product.id, product_org2.id

        response = authenticated_client.get('/products/')
        assert [p['id'] for p in response.get_json()['products']] == [kit_product_id]
        assert authenticated_client.get(f'/products/{product_org2_id}').status_code == 404

    def test_cross_sell_must_be_same_organization(self, authenticated_client, product_org2):
        product_org2_id = product_org2.id
        response = authenticated_client.post('/products/', json={
            'name': 'Kit Verão', 'category': 'outro', 'crosssell_product_1_id': product_org2_id,
        })
        assert response.status_code == 404

    def test_same_product_name_in_both_organizations(self, session, organization1, organization2):
        session.add_all([
            Product(organization_id=organization1.id, name='Sérum', category='outro'),
            Product(organization_id=organization2.id, name='Sérum', category='outro'),
        ])
        session.commit()
        assert session.query(Product).filter_by(organization_id=organization1.id, name='Sérum').count() == 1


class TestSessionScope:
    """A session cannot switch into an organization the user does not belong to."""

    def test_foreign_organization_in_session_is_dropped(self, client, login, owner1, organization2):
        login(owner1.id, organization2.id)

        response = client.get('/sales/')
        assert response.status_code == 403
        with client.session_transaction() as sess:
            assert 'organization_id' not in sess

    def test_select_foreign_organization(self, client, login, owner1, organization1, organization2):
        login(owner1.id, organization1.id)
        organization2_id = organization2.id

        response = client.post('/auth/select-organization', json={'organization_id': organization2_id})
        assert response.status_code == 403

    def test_leads_created_via_api_belong_to_session_organization(self, session, authenticated_client,
                                                                  organization1):
        organization1_id = organization1.id
        response = authenticated_client.post('/leads/', json={'name': 'Dra. Paula', 'stars': 4})
        assert response.status_code == 201

        lead = session.get(Lead, response.get_json()['lead']['id'])
        assert lead.organization_id == organization1_id
