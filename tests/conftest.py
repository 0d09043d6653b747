import mongomock
import pytest
from fastapi.testclient import TestClient

from accounts import AccountService
from database import AccountStore
from feedback import FeedbackService
from main import create_app
from sessions import SessionManager

SECRET = "testing_secret"

PAGES = [
    "index.html",
    "admin.html",
    "deliverySignUp.html",
    "feedback.html",
    "help.html",
    "login.html",
    "userSignUp.html",
    "deliveryProfile.html",
    "userProfile.html",
]


def user_form(**overrides):
    fields = {
        "name": "alice",
        "password": "secret1",
        "password_repeat": "secret1",
        "email": "a@b.com",
        "phone": "555",
        "address": "1 Main St",
        "city": "Springfield",
        "credit": "4111",
    }
    fields.update(overrides)
    return fields


def deliverer_form(**overrides):
    fields = user_form(name="bob", password="drive123", password_repeat="drive123", transportation="bike")
    fields.update(overrides)
    return fields


@pytest.fixture
def store():
    _store = AccountStore(mongomock.MongoClient()["foodshare_test"])
    _store.ensure_indexes()
    return _store


@pytest.fixture
def accounts(store):
    return AccountService(store)


@pytest.fixture
def sessions(store):
    return SessionManager(store, SECRET, secure=False)


@pytest.fixture
def feedback(store):
    return FeedbackService(store)


@pytest.fixture
def pages_dir(tmp_path):
    pages = tmp_path / "pages"
    pages.mkdir()
    for page in PAGES:
        (pages / page).write_text("<html><body>%s</body></html>" % page)
    static = tmp_path / "static"
    static.mkdir()
    (static / "site.css").write_text("body { margin: 0; }")
    return pages


@pytest.fixture
def app(store, pages_dir):
    return create_app(
        store,
        secret_key=SECRET,
        cookie_secure=False,
        pages_dir=str(pages_dir),
        static_dir=str(pages_dir.parent / "static"),
    )


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c
