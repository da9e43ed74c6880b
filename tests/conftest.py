import os

os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")

import uuid

import pytest
from beanie import init_beanie
from httpx import ASGITransport, AsyncClient
from mongomock_motor import AsyncMongoMockClient

from app.api.deps import create_access_token, get_password_hash
from app.main import app
from app.models import DOCUMENT_MODELS
from app.models.user import User, UserRole

PASSWORD = "secret123"
PASSWORD_HASH = get_password_hash(PASSWORD)


@pytest.fixture
async def db():
    client = AsyncMongoMockClient()
    database = client[f"test_{uuid.uuid4().hex[:8]}"]
    await init_beanie(database=database, document_models=DOCUMENT_MODELS)
    yield database


@pytest.fixture
def make_user(db):
    async def _make(role: UserRole = UserRole.TRAINER, **fields) -> User:
        suffix = uuid.uuid4().hex[:8]
        data = {
            "name": f"{role.value.title()} {suffix}",
            "email": f"{role.value}.{suffix}@ndma.gov.in",
            "hashed_password": PASSWORD_HASH,
            "role": role,
        }
        data.update(fields)
        user = User(**data)
        await user.insert()
        return user

    return _make


@pytest.fixture
async def trainer(make_user):
    return await make_user(UserRole.TRAINER, organization="NDMA Training Institute")


@pytest.fixture
async def authority(make_user):
    return await make_user(UserRole.AUTHORITY)


@pytest.fixture
async def trainee(make_user):
    return await make_user(
        UserRole.TRAINEE,
        phone="9800000001",
        age_bracket="18-25",
        district="Pune",
        state="Maharashtra",
    )


@pytest.fixture
async def client(db):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


def auth_headers(user: User) -> dict:
    token = create_access_token(str(user.id), user.role.value, user.name)
    return {"Authorization": f"Bearer {token}"}
