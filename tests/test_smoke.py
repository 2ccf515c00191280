from conftest import ADMIN_PASSWORD, USER_PASSWORD, login


def test_health_ok(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json["ok"] is True
    assert client.get("/healthz").data == b"ok"


def test_public_landing_page(client):
    r = client.get("/")
    assert r.status_code == 200
    assert b"Squadron Portal" in r.data


def test_anonymous_page_redirects_to_login(client):
    r = client.get("/admin/", follow_redirects=False)
    assert r.status_code == 302
    assert "/auth/login" in r.headers["Location"]


def test_anonymous_api_gets_401_json(client):
    for path in ("/api/admin/duties", "/api/rota/all", "/api/absences", "/api/session"):
        r = client.get(path)
        assert r.status_code == 401, path
        assert r.json["error"] == "UnauthenticatedError"


def test_form_login_and_admin_access(client):
    r = client.post("/auth/login", data={"username": "admin", "password": ADMIN_PASSWORD}, follow_redirects=False)
    assert r.status_code == 302
    assert r.headers["Location"].endswith("/admin/")

    r = client.get("/admin/")
    assert r.status_code == 200
    assert b"Admin dashboard" in r.data


def test_username_lookup_is_case_insensitive(client):
    r = client.post("/auth/login", json={"username": "ADMIN", "password": ADMIN_PASSWORD})
    assert r.status_code == 200
    assert r.json["user"]["role"] == "ADMIN"


def test_bad_credentials_json(client):
    r = client.post("/auth/login", json={"username": "admin", "password": "wrong-password"})
    assert r.status_code == 401
    assert r.json["error"] == "UnauthenticatedError"


def test_login_rate_limited(client):
    for _ in range(5):
        client.post("/auth/login", json={"username": "admin", "password": "nope"})
    r = client.post("/auth/login", json={"username": "admin", "password": ADMIN_PASSWORD})
    assert r.status_code == 429


def test_session_endpoint_returns_identity(alice_client):
    r = alice_client.get("/api/session")
    assert r.status_code == 200
    assert r.json["user"]["username"] == "alice"
    assert r.json["user"]["role"] == "USER"
    assert "password_hash" not in r.json["user"]
    assert r.json["csrf_token"]


def test_non_admin_forbidden_on_admin_paths(alice_client):
    r = alice_client.get("/api/admin/duties")
    assert r.status_code == 403
    assert r.json["error"] == "UnauthorizedError"

    r = alice_client.get("/api/admin/users")
    assert r.status_code == 403

    r = alice_client.get("/admin/")
    assert r.status_code == 403


def test_mutation_without_csrf_token_rejected(app):
    c = app.test_client()
    login(c, "alice", USER_PASSWORD)
    del c.environ_base["HTTP_X_CSRF_TOKEN"]
    r = c.post("/api/absences", json={"start_date": "2025-03-01", "end_date": "2025-03-02"})
    assert r.status_code == 400
    assert "CSRF" in r.json["message"]


def test_csrf_token_accepted_in_json_body(app):
    c = app.test_client()
    login(c, "alice", USER_PASSWORD)
    token = c.environ_base.pop("HTTP_X_CSRF_TOKEN")
    r = c.post("/api/absences", json={"start_date": "2025-03-01", "end_date": "2025-03-02", "csrf_token": token})
    assert r.status_code == 201


def test_logout_clears_session(alice_client):
    r = alice_client.get("/auth/logout", follow_redirects=False)
    assert r.status_code == 302
    assert alice_client.get("/api/session").status_code == 401


def test_unknown_api_path_is_json_404(admin_client):
    r = admin_client.get("/api/does-not-exist")
    assert r.status_code == 404
    assert r.json["error"] == "NotFoundError"
