"""
TLA Portal - Test Configuration and Fixtures
"""
import os
from typing import AsyncGenerator, Dict
import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession
from faker import Faker

# Set testing environment
os.environ['ENVIRONMENT'] = 'testing'
os.environ['DATABASE_URL'] = 'sqlite+aiosqlite:///./test.db'
os.environ['JWT_SECRET_KEY'] = 'test-jwt-secret-key-for-testing'
os.environ['JWT_REFRESH_SECRET_KEY'] = 'test-jwt-refresh-secret-key-for-testing'
os.environ['BCRYPT_ROUNDS'] = '4'
os.environ['RATE_LIMIT_ENABLED'] = 'false'

from tla_portal.main import create_app
from tla_portal.core.config import Settings, get_settings
from tla_portal.core.database import Database
from tla_portal.core.security import SessionManager
from tla_portal.models.account import Account
from tla_portal.schemas.account import AdminAccountCreate
from tla_portal.schemas.auth import AccountRegister
from tla_portal.services.account_service import AccountService

fake = Faker()

TEST_PASSWORD = 'testpassword123'


@pytest.fixture
def settings(tmp_path) -> Settings:
    """Settings pointing at a fresh SQLite file for each test"""
    return get_settings().model_copy(
        update={'DATABASE_URL': f"sqlite+aiosqlite:///{tmp_path / 'test.db'}"}
    )


@pytest.fixture
async def app(settings: Settings):
    """Application with its tables created"""
    application = create_app(settings)
    await application.state.database.create_all()
    yield application
    await application.state.database.dispose()


@pytest.fixture
def database(app) -> Database:
    return app.state.database


@pytest.fixture
def session_manager(app) -> SessionManager:
    return app.state.session_manager


@pytest.fixture
def account_service(app) -> AccountService:
    return app.state.account_service


@pytest.fixture
async def db_session(database: Database) -> AsyncGenerator[AsyncSession, None]:
    """Create a fresh database session for each test"""
    async with database.session() as session:
        yield session


@pytest.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client bound to the test application"""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url='http://test') as ac:
        yield ac


def _registration(**overrides) -> Dict:
    """Registration payload with realistic data"""
    data = {
        'name': fake.name(),
        'email': fake.unique.email(),
        'password': TEST_PASSWORD,
        'nida': fake.unique.numerify('1990########-#####-####'),
        'membership_type': 'individual',
        'phone_number': fake.numerify('+2557########'),
    }
    data.update(overrides)
    return data


@pytest.fixture
def registration_data() -> Dict:
    return _registration()


@pytest.fixture
def registration_factory():
    """Build registration payloads, overriding any field"""
    return _registration


@pytest.fixture
async def pending_account(account_service: AccountService, db_session: AsyncSession) -> Account:
    """A self-registered account waiting for approval"""
    return await account_service.register(db_session, AccountRegister(**_registration()))


@pytest.fixture
async def member_account(account_service: AccountService) -> Account:
    """An approved member with a membership number"""
    data = _registration()
    data.pop('nida')
    return await account_service.create_by_admin(AdminAccountCreate(**data))


@pytest.fixture
async def admin_account(account_service: AccountService) -> Account:
    """An administrator account"""
    return await account_service.create_by_admin(
        AdminAccountCreate(
            name=fake.name(),
            email=fake.unique.email(),
            password=TEST_PASSWORD,
            is_admin=True,
        )
    )


@pytest.fixture
def auth_for(session_manager: SessionManager):
    """Headers carrying a fresh access token, as Bearer or as the session cookie"""
    def _headers(account: Account, cookie: bool = False) -> Dict[str, str]:
        token = session_manager.issue_access_token(account.id, account.email, account.is_admin)
        if cookie:
            return {'Cookie': f"{session_manager.settings.SESSION_COOKIE_NAME}={token}"}
        return {'Authorization': f'Bearer {token}'}
    return _headers


@pytest.fixture
def auth_headers(auth_for, member_account: Account) -> Dict[str, str]:
    """Generate authentication headers for an approved member"""
    return auth_for(member_account)


@pytest.fixture
def admin_auth_headers(auth_for, admin_account: Account) -> Dict[str, str]:
    """Generate authentication headers for the admin"""
    return auth_for(admin_account)
