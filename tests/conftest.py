import uuid
from decimal import Decimal

import pytest

from crm import create_app
from crm.database import create_all, drop_all, get_session
from crm.models import (
    AppUser, Lead, Organization, OrganizationMember, Product, ProductPriceKit, MemberRole
)


@pytest.fixture(scope='session')
def app():
    """Create application instance for testing."""
    return create_app('config.TestConfig')


@pytest.fixture(autouse=True)
def database(app):
    """Fresh schema for every test, inside an application context."""
    with app.app_context():
        create_all()
        yield
        get_session().remove()
        drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def session():
    """Create database session for testing."""
    session = get_session()
    yield session
    session.rollback()


@pytest.fixture(scope='function')
def make_organization(session):
    def _make(name='Clínica Teste'):
        suffix = str(uuid.uuid4())[:8]
        organization = Organization(slug=f'org-{suffix}', name=f'{name} {suffix}', active=True)
        session.add(organization)
        session.commit()
        return organization
    return _make


@pytest.fixture(scope='function')
def make_member(session):
    """Factory: user plus active membership with a role."""
    def _make(organization, role=MemberRole.SELLER.value, first_name='Usuário', whatsapp=None,
              commission='10', password=None):
        suffix = str(uuid.uuid4())[:8]
        user = AppUser(
            email=f'{role}-{suffix}@test.com',
            first_name=first_name,
            last_name='Teste',
            whatsapp=whatsapp,
            active=True,
        )
        if password:
            user.set_password(password)
        session.add(user)
        session.flush()
        session.add(OrganizationMember(
            organization_id=organization.id,
            user_id=user.id,
            role=role,
            default_commission_percentage=Decimal(commission),
            active=True,
        ))
        session.commit()
        return user
    return _make


@pytest.fixture(scope='function')
def organization1(make_organization):
    return make_organization('Clínica Um')


@pytest.fixture(scope='function')
def organization2(make_organization):
    return make_organization('Clínica Dois')


@pytest.fixture(scope='function')
def owner1(make_member, organization1):
    return make_member(organization1, MemberRole.OWNER.value, 'Ana', whatsapp='5511987654321',
                       password='password123')


@pytest.fixture(scope='function')
def seller1(make_member, organization1):
    return make_member(organization1, MemberRole.SELLER.value, 'Bruno', commission='10')


@pytest.fixture(scope='function')
def manager1(make_member, organization1):
    return make_member(organization1, MemberRole.MANAGER.value, 'Carla', commission='5')


@pytest.fixture(scope='function')
def courier1(make_member, organization1):
    return make_member(organization1, MemberRole.DELIVERY.value, 'Diego')


@pytest.fixture(scope='function')
def owner2(make_member, organization2):
    return make_member(organization2, MemberRole.OWNER.value, 'Eva', whatsapp='5521912345678')


@pytest.fixture(scope='function')
def lead1(session, organization1):
    lead = Lead(
        organization_id=organization1.id,
        name='Dr. João Silva',
        whatsapp='5511999990000',
        instagram='drjoao',
        email='joao@clinica.com',
        specialty='Cirurgião plástico',
        street='Rua das Flores',
        street_number='123',
        neighborhood='Centro',
        city='São Paulo',
        state='SP',
        cep='01000-000',
    )
    session.add(lead)
    session.commit()
    return lead


@pytest.fixture(scope='function')
def lead2(session, organization2):
    lead = Lead(organization_id=organization2.id, name='Dra. Maria', whatsapp='5521988887777')
    session.add(lead)
    session.commit()
    return lead


@pytest.fixture(scope='function')
def kit_product(session, organization1):
    """Ready-made product with three kits and 20 units on hand."""
    product = Product(
        organization_id=organization1.id,
        name='Sérum Facial',
        category='produto_pronto',
        track_stock=True,
        stock_quantity=20,
        minimum_stock=2,
    )
    product.price_kits = [
        ProductPriceKit(
            organization_id=organization1.id, quantity=1, position=0,
            regular_price_cents=10000, promotional_price_cents=9000,
            promotional_price_2_cents=8500, minimum_price_cents=8000,
            minimum_use_default_commission=False, minimum_custom_commission=Decimal('4'),
        ),
        ProductPriceKit(
            organization_id=organization1.id, quantity=3, position=1,
            regular_price_cents=25000, promotional_price_cents=24000, minimum_price_cents=21000,
        ),
        ProductPriceKit(
            organization_id=organization1.id, quantity=6, position=2,
            regular_price_cents=45000, minimum_price_cents=40000,
        ),
    ]
    session.add(product)
    session.commit()
    return product


@pytest.fixture(scope='function')
def legacy_product(session, organization1):
    """Product priced by the 1/3/6/12-unit table, stock not tracked."""
    product = Product(
        organization_id=organization1.id,
        name='Creme Hidratante',
        category='outro',
        price_1_unit=5000,
        price_3_units=4500,
        price_6_units=4000,
        price_12_units=3500,
        minimum_price=3000,
    )
    session.add(product)
    session.commit()
    return product


@pytest.fixture(scope='function')
def product_org2(session, organization2):
    product = Product(
        organization_id=organization2.id,
        name='Produto Outra Clínica',
        category='outro',
        price_1_unit=7000,
    )
    session.add(product)
    session.commit()
    return product


@pytest.fixture(scope='function')
def login(client):
    """Put a user and organization in the client session."""
    def _login(user_id, organization_id):
        with client.session_transaction() as sess:
            sess['user_id'] = user_id
            sess['organization_id'] = organization_id
        return client
    return _login


@pytest.fixture(scope='function')
def authenticated_client(login, owner1, organization1):
    """Create authenticated client for organization1 as its owner."""
    return login(owner1.id, organization1.id)
