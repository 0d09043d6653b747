from unittest import mock

from bson import ObjectId
from pymongo.errors import ServerSelectionTimeoutError

from conftest import deliverer_form, user_form
from schemas import Role


def login(client, name, password, is_deliverer=False):
    return client.post(
        "/login",
        data={"name": name, "password": password, "isDeliverer": "true" if is_deliverer else "false"},
    )


def test_example_scenario(client):
    res = client.post("/submit_user_form", data=user_form())
    assert res.status_code == 200
    assert res.content == b""

    res = login(client, "alice", "secret1")
    assert res.status_code == 200
    assert res.text == "Successful Login"
    assert "loginUser" in res.cookies

    res = client.get("/get_user_info")
    assert res.status_code == 200
    doc = res.json()
    assert doc["name"] == "alice"
    assert doc["feedback"] == []
    assert ObjectId.is_valid(doc["id"])
    assert "password_hash" not in doc
    assert "_id" not in doc


def test_signup_errors_listed_as_html(client):
    res = client.post("/submit_user_form", data=user_form(password="abc", password_repeat="abd", email="x"))
    assert res.status_code == 400
    assert res.headers["content-type"].startswith("text/html")
    assert res.text == (
        "<p>Errors:</p>"
        "<p>Password: 6 to 20 characters required</p>"
        "<p>Passwords do not match</p>"
        "<p>Enter a valid email!</p>"
    )


def test_signup_accepts_json(client, store):
    res = client.post("/submit_delivery_form", json=deliverer_form())
    assert res.status_code == 200
    assert store.find_by_name(Role.DELIVERER, "bob")["transportation"] == "bike"


def test_duplicate_signup(client):
    assert client.post("/submit_delivery_form", data=deliverer_form()).status_code == 200
    res = client.post("/submit_delivery_form", data=deliverer_form())
    assert res.status_code == 400
    assert res.text == "Name already exists!"


def test_login_failures(client):
    client.post("/submit_user_form", data=user_form())
    wrong = login(client, "alice", "nope123")
    unknown = login(client, "zed", "secret1")
    assert wrong.status_code == unknown.status_code == 400
    assert wrong.text == unknown.text == "Error: Incorrect name / password"
    assert "loginUser" not in wrong.cookies


def test_deliverer_login_and_info(client):
    client.post("/submit_delivery_form", data=deliverer_form())
    res = login(client, "bob", "drive123", is_deliverer=True)
    assert res.status_code == 200
    assert res.text == "Deliverer Success"
    assert "loginDeliverer" in res.cookies

    res = client.get("/get_deliverer_info")
    assert res.status_code == 200
    assert res.json()["transportation"] == "bike"

    # the deliverer cookie says nothing about users
    res = client.get("/get_user_info")
    assert res.status_code == 400


def test_info_without_cookie(client):
    res = client.get("/get_user_info")
    assert res.status_code == 400
    assert res.text == "Error in retrieving user data"
    res = client.get("/get_deliverer_info")
    assert res.status_code == 400
    assert res.text == "Error in retrieving deliverer data"


def test_info_with_bad_cookies(client, app):
    sessions = app.state.sessions
    for value in ("not-a-token", sessions.create_token(Role.USER, "xyz"), sessions.create_token(Role.USER, str(ObjectId()))):
        client.cookies.set("loginUser", value)
        assert client.get("/get_user_info").status_code == 400
        client.cookies.clear()


def test_profile_pages_gated(client):
    assert client.get("/userProfile.html").status_code == 400
    assert client.get("/userProfile.html").text == "You cannot access this page"

    client.post("/submit_user_form", data=user_form())
    login(client, "alice", "secret1")
    res = client.get("/userProfile.html")
    assert res.status_code == 200
    assert "userProfile.html" in res.text
    assert client.get("/deliveryProfile.html").status_code == 400


def test_public_pages(client):
    for path in ("/", "/index.html", "/admin", "/login.html", "/feedback.html", "/help.html"):
        res = client.get(path)
        assert res.status_code == 200, path
        assert res.headers["content-type"].startswith("text/html")
    assert client.get("/static/site.css").status_code == 200


def test_missing_page_file(client, pages_dir):
    (pages_dir / "help.html").unlink()
    assert client.get("/help.html").status_code == 404


def test_name_lists(client):
    client.post("/submit_user_form", data=user_form())
    client.post("/submit_user_form", data=user_form(name="carol"))
    client.post("/submit_delivery_form", data=deliverer_form())
    assert client.get("/get_all_users").json() == [{"name": "alice"}, {"name": "carol"}]
    assert client.get("/get_all_deliverers").json() == [{"name": "bob"}]


def test_make_comment(client, store):
    client.post("/submit_user_form", data=user_form())
    client.post("/submit_delivery_form", data=deliverer_form())
    login(client, "alice", "secret1")

    res = client.post("/make_comment", data={"rating": "5", "msg": "great", "username": "bob"})
    assert res.status_code == 200
    assert res.text == "Success"
    assert store.find_by_name(Role.DELIVERER, "bob")["feedback"] == [
        {"rating": 5, "madeBy": "alice", "msg": "great"}
    ]

    res = client.post("/make_comment", data={"rating": "5", "msg": "great", "username": "ghost"})
    assert res.status_code == 400
    assert res.text == "Not found, couldn't make comment"


def test_make_comment_requires_login(client):
    res = client.post("/make_comment", data={"rating": "5", "msg": "hi", "username": "bob"})
    assert res.status_code == 400
    assert res.text == "You have to be logged in to make a comment"


def test_make_comment_with_both_cookies(client, store):
    client.post("/submit_user_form", data=user_form())
    client.post("/submit_delivery_form", data=deliverer_form())
    login(client, "alice", "secret1")
    login(client, "bob", "drive123", is_deliverer=True)

    res = client.post("/make_comment", data={"rating": "4", "msg": "hi", "username": "alice"})
    assert res.status_code == 400
    assert store.find_by_name(Role.USER, "alice")["feedback"] == []


def test_make_comment_bad_rating(client):
    client.post("/submit_user_form", data=user_form())
    client.post("/submit_delivery_form", data=deliverer_form())
    login(client, "alice", "secret1")
    res = client.post("/make_comment", data={"rating": "ten", "msg": "hi", "username": "bob"})
    assert res.status_code == 400
    assert "Enter a rating from 1 to 5" in res.text


def test_make_order_stub(client):
    res = client.post("/make_order", json={"food": "pizza"})
    assert res.status_code == 200
    assert res.text == "Nothing"


def test_store_failure_is_generic(client, store):
    collection = mock.Mock()
    collection.insert_one.side_effect = ServerSelectionTimeoutError("db01:27017 unreachable")
    with mock.patch.object(store, "collection", return_value=collection):
        res = client.post("/submit_user_form", data=user_form())
    assert res.status_code == 400
    assert res.text == "Database error"
    assert "db01" not in res.text


def test_health(client):
    res = client.get("/test")
    assert res.status_code == 200
    assert res.json()["database"] == "ok"


def test_login_json_body_with_boolean_flag(client):
    client.post("/submit_delivery_form", data=deliverer_form())
    res = client.post("/login", json={"name": "bob", "password": "drive123", "isDeliverer": True})
    assert res.status_code == 200
    assert res.text == "Deliverer Success"
    assert "loginDeliverer" in res.cookies


def test_login_malformed_body(client):
    client.post("/submit_user_form", data=user_form())
    res = client.post("/login", json={"name": ["alice"], "password": "secret1"})
    assert res.status_code == 400
    assert res.text == "Error: Incorrect name / password"
    res = client.post("/login", json={"name": "alice", "password": "secret1", "isDeliverer": "maybe"})
    assert res.status_code == 400


def test_make_comment_json_body(client, store):
    client.post("/submit_user_form", data=user_form())
    client.post("/submit_delivery_form", data=deliverer_form())
    login(client, "bob", "drive123", is_deliverer=True)

    res = client.post("/make_comment", json={"rating": True, "msg": "bool", "username": "alice"})
    assert res.status_code == 400
    assert "Enter a rating from 1 to 5" in res.text

    res = client.post("/make_comment", json={"rating": 3, "msg": "hi", "username": 42})
    assert res.status_code == 400
    assert "Choose who the feedback is for" in res.text

    res = client.post("/make_comment", json={"rating": 3, "msg": "on time", "username": "alice"})
    assert res.status_code == 200
    assert store.find_by_name(Role.USER, "alice")["feedback"] == [
        {"rating": 3, "madeBy": "bob", "msg": "on time"}
    ]
