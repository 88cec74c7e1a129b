from dataclasses import replace

from fastapi.testclient import TestClient

from membership.api.server import create_app
from membership.auth import crud
from membership.db import connect

from .conftest import login, make_client, set_admin, signup


def _cookie_name(cfg) -> str:
    return cfg.SESSION_COOKIE_NAME


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_home_anonymous_and_authenticated(client):
    res = client.get("/")
    assert res.status_code == 200
    assert "<title>Home</title>" in res.text

    signup(client, "Alice", "alice@example.com", "secret123")
    login(client, "alice@example.com", "secret123")
    res = client.get("/")
    assert "<title>Members</title>" in res.text
    assert "Hello, Alice!" in res.text


def test_signup_login_members_flow(client, cfg):
    res = signup(client, "Alice", "alice@example.com", "secret123")
    assert res.status_code == 302
    assert res.headers["location"] == "/login"

    res = login(client, "alice@example.com", "secret123")
    assert res.status_code == 302
    assert res.headers["location"] == "/members"
    assert _cookie_name(cfg) in res.cookies

    res = client.get("/members")
    assert res.status_code == 200
    assert "Hello, Alice." in res.text
    for image in cfg.GALLERY_IMAGES:
        assert image in res.text


def test_session_cookie_is_opaque_and_httponly(client, cfg):
    signup(client, "Alice", "alice@example.com", "secret123")
    res = login(client, "alice@example.com", "secret123")
    header = res.headers["set-cookie"].lower()
    assert "httponly" in header
    assert "max-age=600" in header
    assert "alice@example.com" not in res.cookies[_cookie_name(cfg)]


def test_signup_validation_error_page(client):
    res = signup(client, "Alice!", "alice@example.com", "secret123")
    assert res.status_code == 200
    assert "<title>Signup Error</title>" in res.text
    assert "must only contain alpha-numeric characters" in res.text


def test_signup_blank_fields_are_empty_not_missing(client):
    res = signup(client, "Alice", "alice@example.com", "")
    assert "&#34;password&#34; is not allowed to be empty" in res.text

    res = signup(client, "", "alice@example.com", "secret123")
    assert "&#34;name&#34; is not allowed to be empty" in res.text


def test_signup_missing_field_is_required(client):
    res = client.post("/signup", data={"name": "Alice", "username": "alice@example.com"})
    assert res.status_code == 200
    assert "&#34;password&#34; is required" in res.text


def test_login_blank_fields_are_empty_not_missing(client):
    res = login(client, "", "secret123")
    assert res.status_code == 200
    assert "<title>Login</title>" in res.text
    assert "&#34;username&#34; is not allowed to be empty" in res.text

    res = login(client, "alice@example.com", "")
    assert "&#34;password&#34; is not allowed to be empty" in res.text


def test_startup_bootstraps_admin(cfg):
    cfg = replace(cfg, ADMIN_BOOTSTRAP_USERNAME="root@example.com", ADMIN_BOOTSTRAP_PASSWORD="rootpw")
    with make_client(cfg) as client:
        assert login(client, "root@example.com", "rootpw").headers["location"] == "/members"
        assert client.get("/admin", follow_redirects=False).status_code == 200


def test_signup_duplicate_page(client, cfg):
    signup(client, "Alice", "alice@example.com", "secret123")
    with connect(cfg.DB_DSN) as conn:
        before = crud.find_by_username(conn, "alice@example.com")

    res = signup(client, "Eve", "alice@example.com", "hunter2")
    assert res.status_code == 200
    assert "Email already exists" in res.text

    with connect(cfg.DB_DSN) as conn:
        assert crud.find_by_username(conn, "alice@example.com") == before


def test_login_errors_rerender_form(client):
    signup(client, "Alice", "alice@example.com", "secret123")

    res = login(client, "alice@example.com", "wrong")
    assert res.status_code == 200
    assert "Invalid password" in res.text

    res = login(client, "ghost@example.com", "secret123")
    assert "User not found" in res.text

    res = login(client, "not-an-email", "secret123")
    assert "must be a valid email" in res.text

    assert client.get("/members", follow_redirects=False).headers["location"] == "/login"


def test_login_when_already_authenticated(client):
    signup(client, "Alice", "alice@example.com", "secret123")
    login(client, "alice@example.com", "secret123")
    res = login(client, "whatever", "")
    assert res.status_code == 302
    assert res.headers["location"] == "/members"


def test_logout(client, cfg):
    signup(client, "Alice", "alice@example.com", "secret123")
    login(client, "alice@example.com", "secret123")

    res = client.get("/logout", follow_redirects=False)
    assert res.status_code == 302
    assert res.headers["location"] == "/"
    with connect(cfg.DB_DSN) as conn:
        assert conn.execute("SELECT COUNT(*) AS n FROM sessions").fetchone()["n"] == 0

    assert client.get("/members", follow_redirects=False).headers["location"] == "/login"


def test_logout_anonymous(client):
    res = client.get("/logout", follow_redirects=False)
    assert res.status_code == 302
    assert res.headers["location"] == "/"


def test_members_requires_login(client):
    res = client.get("/members", follow_redirects=False)
    assert res.status_code == 302
    assert res.headers["location"] == "/login"


def test_forged_cookie_is_anonymous(client, cfg):
    client.cookies.set(_cookie_name(cfg), "not-a-real-token")
    res = client.get("/members", follow_redirects=False)
    assert res.headers["location"] == "/login"


def test_expired_server_session_is_anonymous(client, cfg):
    signup(client, "Alice", "alice@example.com", "secret123")
    login(client, "alice@example.com", "secret123")
    with connect(cfg.DB_DSN) as conn:
        conn.execute("UPDATE sessions SET expires_at='2000-01-01T00:00:00Z'")

    res = client.get("/members", follow_redirects=False)
    assert res.headers["location"] == "/login"
    with connect(cfg.DB_DSN) as conn:
        assert conn.execute("SELECT COUNT(*) AS n FROM sessions").fetchone()["n"] == 0


def test_admin_redirects(client):
    res = client.get("/admin", follow_redirects=False)
    assert res.status_code == 302
    assert res.headers["location"] == "/login"

    signup(client, "Alice", "alice@example.com", "secret123")
    login(client, "alice@example.com", "secret123")
    res = client.get("/admin", follow_redirects=False)
    assert res.status_code == 302
    assert res.headers["location"].startswith("/members")

    for path in ("/admin/promote/alice@example.com", "/admin/demote/alice@example.com"):
        res = client.get(path, follow_redirects=False)
        assert res.headers["location"].startswith("/members")


def test_non_admin_sees_error_on_members_page(client):
    signup(client, "Alice", "alice@example.com", "secret123")
    login(client, "alice@example.com", "secret123")
    res = client.get("/admin")
    assert res.status_code == 200
    assert "You are not authorized to access this page" in res.text


def test_admin_lists_users_without_hashes(client, cfg):
    signup(client, "Root", "root@example.com", "rootpw")
    signup(client, "Alice", "alice@example.com", "secret123")
    set_admin(cfg, "root@example.com")
    login(client, "root@example.com", "rootpw")

    res = client.get("/admin")
    assert res.status_code == 200
    assert "alice@example.com" in res.text
    assert "root@example.com" in res.text
    assert "pbkdf2" not in res.text


def test_promote_applies_on_next_login(cfg):
    with make_client(cfg) as admin_client, make_client(cfg) as alice_client:
        signup(admin_client, "Root", "root@example.com", "rootpw")
        set_admin(cfg, "root@example.com")
        login(admin_client, "root@example.com", "rootpw")

        signup(alice_client, "Alice", "alice@example.com", "secret123")
        login(alice_client, "alice@example.com", "secret123")
        assert alice_client.get("/admin", follow_redirects=False).headers["location"].startswith("/members")

        res = admin_client.get("/admin/promote/alice@example.com", follow_redirects=False)
        assert res.status_code == 302
        assert res.headers["location"] == "/admin"

        # The running session keeps the flag it was granted with.
        assert alice_client.get("/admin", follow_redirects=False).status_code == 302

        alice_client.get("/logout")
        login(alice_client, "alice@example.com", "secret123")
        assert alice_client.get("/admin", follow_redirects=False).status_code == 200

        res = admin_client.get("/admin/demote/alice@example.com", follow_redirects=False)
        assert res.headers["location"] == "/admin"
        with connect(cfg.DB_DSN) as conn:
            assert crud.find_by_username(conn, "alice@example.com").admin is False


def test_promote_missing_user_redirects_to_admin(client, cfg):
    signup(client, "Root", "root@example.com", "rootpw")
    set_admin(cfg, "root@example.com")
    login(client, "root@example.com", "rootpw")
    res = client.get("/admin/promote/ghost@example.com", follow_redirects=False)
    assert res.status_code == 302
    assert res.headers["location"] == "/admin"


def test_unknown_path_renders_404(client):
    res = client.get("/does/not/exist")
    assert res.status_code == 404
    assert "Page not found" in res.text


def test_rolling_sessions_extend_expiry(cfg):
    rolling = replace(cfg, SESSION_ROLLING=True)
    with make_client(rolling) as c:
        signup(c, "Alice", "alice@example.com", "secret123")
        login(c, "alice@example.com", "secret123")
        with connect(cfg.DB_DSN) as conn:
            conn.execute("UPDATE sessions SET expires_at='2999-01-01T00:00:00Z'")

        assert c.get("/members").status_code == 200
        with connect(cfg.DB_DSN) as conn:
            expires_at = conn.execute("SELECT expires_at FROM sessions").fetchone()["expires_at"]
        assert expires_at < "2999-01-01T00:00:00Z"


def test_fixed_sessions_do_not_slide(client, cfg):
    signup(client, "Alice", "alice@example.com", "secret123")
    login(client, "alice@example.com", "secret123")
    with connect(cfg.DB_DSN) as conn:
        conn.execute("UPDATE sessions SET expires_at='2999-01-01T00:00:00Z'")

    assert client.get("/members").status_code == 200
    with connect(cfg.DB_DSN) as conn:
        assert conn.execute("SELECT expires_at FROM sessions").fetchone()["expires_at"] == "2999-01-01T00:00:00Z"


def test_storage_failure_renders_generic_error(tmp_path, cfg):
    # A directory is not an openable SQLite database.
    broken = replace(cfg, DB_DSN=str(tmp_path))
    c = TestClient(create_app(broken))  # no lifespan: startup would fail too
    res = c.post(
        "/signup",
        data={"name": "Alice", "username": "alice@example.com", "password": "secret123"},
        follow_redirects=False,
    )
    assert res.status_code == 500
    assert "Service temporarily unavailable" in res.text
    assert "sqlite" not in res.text.lower()
    assert "secret123" not in res.text


def test_rolling_cookie_has_no_fixed_lifetime(cfg):
    rolling = replace(cfg, SESSION_ROLLING=True)
    with make_client(rolling) as c:
        signup(c, "Alice", "alice@example.com", "secret123")
        res = login(c, "alice@example.com", "secret123")
        assert "max-age" not in res.headers["set-cookie"].lower()
