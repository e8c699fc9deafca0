import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

from auth.models import User
from auth.security import hash_password, issue_token
from config import Settings
from database import Base, create_sessionmaker
from exceptions import UpstreamServiceError
from main import create_app
from photos.storage import StoredImage

PASSWORD = "password123"


class FakeImageStorage:
    """In-memory stand-in for Google Drive."""

    def __init__(self):
        self.uploaded = {}
        self.deleted = []
        self.fail_upload = False
        self.fail_delete = False
        self.fail_after = None
        self._next_id = 1

    async def upload(self, data, filename, content_type):
        if self.fail_upload or (
            self.fail_after is not None and len(self.uploaded) >= self.fail_after
        ):
            raise UpstreamServiceError("Failed to upload the image to Google Drive")
        asset_id = f"asset-{self._next_id}"
        self._next_id += 1
        self.uploaded[asset_id] = (filename, content_type, data)
        return StoredImage(url=f"https://images.test/{asset_id}", asset_id=asset_id)

    async def delete(self, asset_id):
        if self.fail_delete:
            raise UpstreamServiceError(f"Failed to delete Drive file {asset_id}")
        self.deleted.append(asset_id)


@pytest.fixture
def settings():
    return Settings(
        jwt_secret="test-secret",
        database_url="sqlite+aiosqlite://",
        bcrypt_rounds=4,
        max_upload_bytes=1024,
    )


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
async def db(engine):
    async with create_sessionmaker(engine)() as session:
        yield session


@pytest.fixture
def storage():
    return FakeImageStorage()


@pytest.fixture
def app(settings, engine, storage):
    return create_app(settings, engine=engine, image_storage=storage)


@pytest.fixture
async def client(app):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client


async def _make_user(engine, settings, username, role):
    async with create_sessionmaker(engine)() as session:
        user = User(
            username=username,
            password_hash=hash_password(PASSWORD, settings.bcrypt_rounds),
            role=role,
        )
        session.add(user)
        await session.commit()
        return user


@pytest.fixture
async def admin(engine, settings):
    return await _make_user(engine, settings, "admin", "admin")


@pytest.fixture
async def editor(engine, settings):
    return await _make_user(engine, settings, "editor", "editor")


@pytest.fixture
def admin_headers(admin, settings):
    return {"Authorization": f"Bearer {issue_token(admin, settings)}"}


@pytest.fixture
def editor_headers(editor, settings):
    return {"Authorization": f"Bearer {issue_token(editor, settings)}"}


@pytest.fixture
def create_cat(client, admin_headers):
    async def create(**fields):
        response = await client.post("/cats", json=fields, headers=admin_headers)
        assert response.status_code == 201, response.text
        return response.json()

    return create


@pytest.fixture
def upload_photo(client, admin_headers):
    async def upload(cat_id, cover=None, position=None):
        data = {"catId": str(cat_id)}
        if cover is not None:
            data["cover"] = "true" if cover else "false"
        if position is not None:
            data["position"] = str(position)
        response = await client.post(
            "/photos/upload",
            data=data,
            files={"file": ("cat.jpg", b"\xff\xd8\xff fake jpeg", "image/jpeg")},
            headers=admin_headers,
        )
        assert response.status_code == 201, response.text
        return response.json()

    return upload
