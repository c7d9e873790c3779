import os
import tempfile

import pytest

# Keep the import-time engine away from the working directory
_TMP = tempfile.mkdtemp(prefix="plot-harvests-")
os.environ.setdefault("DATABASE_URL", f"sqlite:///{os.path.join(_TMP, 'import.db')}")

from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402

from app import app, get_db  # noqa: E402
from auth import get_identity  # noqa: E402
from database import Base, make_engine  # noqa: E402
from identity import IdentityError  # noqa: E402

ADMIN = {"id": "u-admin", "email": "admin@example.com", "role": "authenticated", "app_metadata": {"role": "admin"}}
USER = {"id": "u-user", "email": "user@example.com", "app_metadata": {"role": "user"}}
BARE = {"id": "u-bare", "email": "bare@example.com"}


class FakeIdentity:
    """In-memory identity provider keyed by access token."""

    def __init__(self):
        self.users = {"admin-token": ADMIN, "user-token": USER, "bare-token": BARE}
        self.calls = []
        self.failures = {}

    def _record(self, name, *args):
        self.calls.append((name,) + args)
        if name in self.failures:
            raise self.failures[name]

    def get_user(self, token):
        self._record("get_user", token)
        if token not in self.users:
            raise IdentityError("invalid JWT", status=401)
        return self.users[token]

    def sign_up(self, email, password, data=None):
        self._record("sign_up", email, password, data)
        return {"id": "u-new", "email": email, "user_metadata": data or {}}

    def sign_in_with_password(self, email, password):
        self._record("sign_in_with_password", email, password)
        if password != "secret":
            raise IdentityError("Invalid login credentials", status=400)
        return {"user": USER, "session": {"access_token": "user-token", "refresh_token": "rt-1"}}

    def sign_out(self, token):
        self._record("sign_out", token)
        return {}

    def recover(self, email):
        self._record("recover", email)
        return {}

    def update_user(self, token, attributes):
        self._record("update_user", token, attributes)
        return dict(self.users.get(token, {}))

    def authorize_url(self, provider):
        return f"https://auth.example.com/auth/v1/authorize?provider={provider}"

    def admin_create_user(self, attributes):
        self._record("admin_create_user", attributes)
        return {"id": "u-created", **attributes}

    def admin_update_user_by_id(self, user_id, attributes):
        self._record("admin_update_user_by_id", user_id, attributes)
        return {"id": user_id, **attributes}

    def called(self, name):
        return [c for c in self.calls if c[0] == name]


@pytest.fixture
def session_factory(tmp_path):
    engine = make_engine(f"sqlite:///{tmp_path / 'test.db'}")
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    engine.dispose()


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def identity():
    return FakeIdentity()


@pytest.fixture
def client(session_factory, identity):
    def _get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_identity] = lambda: identity
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def admin_headers():
    return {"Authorization": "Bearer admin-token"}


@pytest.fixture
def user_headers():
    return {"Authorization": "Bearer user-token"}
