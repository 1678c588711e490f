"""Tests for the authentication endpoints and dependencies."""

import pytest
from fastapi.testclient import TestClient

from insidemeter.app import App
from insidemeter.core.modules.user.models import User
from insidemeter.core.modules.user.service import hash_password
from insidemeter.web.server import create_fastapi_app

PASSWORD = "full-moon"
GENERIC_401 = {"message": "Authentication required", "type": "authentication_error"}
ANONYMOUS = {"isAuthenticated": False, "user": None}


@pytest.fixture
def app(fake_mongo, config):
    """App with one stored user whose password is PASSWORD."""
    app = App(config)
    user = User(id=42, username="moonchild", email="moonchild@example.com", password_hash=hash_password(PASSWORD))
    app._core.database.get_collection("users").docs.append(user.to_mongo())
    return app


@pytest.fixture
def client(app, config):
    """Test client with the application lifespan running."""
    with TestClient(create_fastapi_app(app, config)) as client:
        yield client


@pytest.fixture
def ios_token(client):
    """A token obtained through the iOS login endpoint, without cookies left behind."""
    response = client.post("/api/ios-login", json={"username": "moonchild", "password": PASSWORD})
    client.cookies.clear()
    return response.json()["token"]


class TestLogin:
    """Tests for POST /api/login and /api/ios-login."""

    def test_web_login(self, client):
        """Test that web login sets the session cookie and also returns an iOS token."""
        response = client.post("/api/login", json={"username": "moonchild", "password": PASSWORD})
        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["user"]["id"] == 42
        assert data["user"]["username"] == "moonchild"
        assert data["iosAuthToken"].startswith("42:")
        assert response.headers["X-iOS-Auth-Token"] == data["iosAuthToken"]
        assert "session_id" in response.cookies

    def test_login_by_email(self, client):
        """Test that the username field accepts an email address."""
        response = client.post("/api/login", json={"username": "MoonChild@example.com", "password": PASSWORD})
        assert response.status_code == 200

    def test_wrong_password(self, client):
        """Test that bad credentials return 401 without a session."""
        response = client.post("/api/login", json={"username": "moonchild", "password": "new-moon"})
        assert response.status_code == 401
        assert response.json() == {"message": "Invalid username or password", "type": "authentication_error"}
        assert "session_id" not in response.cookies

    def test_ios_login(self, client):
        """Test that iOS login returns a token with its expiry and no session cookie."""
        response = client.post("/api/ios-login", json={"username": "moonchild", "password": PASSWORD})
        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["token"].startswith("42:")
        assert "expiresAt" in data
        assert data["user"]["username"] == "moonchild"
        assert "session_id" not in response.cookies


class TestRegister:
    """Tests for POST /api/register."""

    def test_register_logs_in(self, client):
        """Test that a new account is created and signed in."""
        response = client.post("/api/register", json={"username": "luna", "password": "secret1", "name": "Luna"})
        assert response.status_code == 201
        data = response.json()
        assert data["user"]["username"] == "luna"
        assert data["user"]["name"] == "Luna"
        assert data["iosAuthToken"]

        status = client.get("/api/auth/status").json()
        assert status["isAuthenticated"] is True
        assert status["user"]["username"] == "luna"

    def test_duplicate_username(self, client):
        """Test that taken usernames are reported as validation errors."""
        response = client.post("/api/register", json={"username": "moonchild", "password": "secret1"})
        assert response.status_code == 400
        assert response.json()["type"] == "validation_error"


class TestAuthStatus:
    """Tests for GET /api/auth/status."""

    def test_anonymous(self, client):
        """Test that callers without credentials get an anonymous answer, not 401."""
        response = client.get("/api/auth/status")
        assert response.status_code == 200
        assert response.json() == ANONYMOUS

    def test_bearer_header(self, client, ios_token):
        """Test that the standard Authorization header is accepted."""
        data = client.get("/api/auth/status", headers={"Authorization": f"Bearer {ios_token}"}).json()
        assert data["isAuthenticated"] is True
        assert data["user"]["id"] == 42

    def test_ios_header(self, client, ios_token):
        """Test that the header the iOS app sends is accepted."""
        data = client.get("/api/auth/status", headers={"X-iOS-Auth-Token": ios_token}).json()
        assert data["isAuthenticated"] is True
        assert data["user"]["subscriptionTier"] == "free"

    def test_invalid_token_is_anonymous(self, client):
        """Test that a bad token never turns into a 401 here."""
        response = client.get("/api/auth/status", headers={"X-iOS-Auth-Token": "abc:def:ghi"})
        assert response.status_code == 200
        assert response.json() == ANONYMOUS

    def test_session_cookie(self, client):
        """Test that the browser session is recognized."""
        client.post("/api/login", json={"username": "moonchild", "password": PASSWORD})
        data = client.get("/api/auth/status").json()
        assert data["isAuthenticated"] is True
        assert data["user"]["username"] == "moonchild"


class TestRequiredBearer:
    """Tests for endpoints that require an iOS token."""

    def test_profile_with_token(self, client, ios_token):
        """Test that a valid token reaches the endpoint."""
        response = client.get("/api/ios/profile", headers={"X-iOS-Auth-Token": ios_token})
        assert response.status_code == 200
        assert response.json()["username"] == "moonchild"

    def test_missing_token(self, client):
        """Test that requests without a token get the generic 401."""
        response = client.get("/api/ios/profile")
        assert response.status_code == 401
        assert response.json() == GENERIC_401
        assert response.headers["WWW-Authenticate"] == "Bearer"

    def test_malformed_token(self, client):
        """Test that malformed tokens get the same generic 401."""
        response = client.get("/api/ios/profile", headers={"Authorization": "Bearer not:a:valid:token:at:all"})
        assert response.status_code == 401
        assert response.json() == GENERIC_401

    def test_superseded_token(self, client, app, ios_token):
        """Test that a validly signed token that is not the user's active one is rejected."""
        codec = app._core.services.token.codec
        other = codec.issue(42, codec.verify(ios_token).issued_at_millis + 1)
        response = client.get("/api/ios/profile", headers={"X-iOS-Auth-Token": other})
        assert response.status_code == 401
        assert response.json() == GENERIC_401

    def test_ios_auth_status(self, client, ios_token):
        """Test that the token check endpoint reports the user."""
        data = client.get("/api/ios/auth/status", headers={"X-iOS-Auth-Token": ios_token}).json()
        assert data["isAuthenticated"] is True
        assert data["user"]["id"] == 42

    def test_ios_logout_revokes_token(self, client, ios_token):
        """Test that after iOS logout the same token is refused."""
        headers = {"X-iOS-Auth-Token": ios_token}
        assert client.post("/api/ios/logout", headers=headers).status_code == 204
        assert client.get("/api/ios/profile", headers=headers).status_code == 401
        assert client.get("/api/auth/status", headers=headers).json() == ANONYMOUS


class TestSessionEndpoints:
    """Tests for endpoints backed by the browser session."""

    def test_logout_ends_session(self, client):
        """Test that logout clears the session and is safe to repeat."""
        client.post("/api/login", json={"username": "moonchild", "password": PASSWORD})
        assert client.post("/api/logout").status_code == 204
        assert client.get("/api/auth/status").json() == ANONYMOUS
        assert client.post("/api/logout").status_code == 204

    def test_profile_with_cookie(self, client):
        """Test that the general profile endpoint accepts the session cookie."""
        client.post("/api/login", json={"username": "moonchild", "password": PASSWORD})
        response = client.get("/api/profile")
        assert response.status_code == 200
        assert response.json()["email"] == "moonchild@example.com"

    def test_profile_without_credentials(self, client):
        """Test that the general profile endpoint requires some credential."""
        response = client.get("/api/profile")
        assert response.status_code == 401
        assert response.json() == GENERIC_401

    def test_session_to_ios_token(self, client):
        """Test that a signed-in browser session can obtain an iOS token."""
        client.post("/api/login", json={"username": "moonchild", "password": PASSWORD})
        response = client.post("/api/auth/ios-token")
        assert response.status_code == 200
        token = response.json()["token"]

        client.cookies.clear()
        assert client.get("/api/ios/profile", headers={"X-iOS-Auth-Token": token}).status_code == 200

    def test_ios_token_requires_session(self, client):
        """Test that the token exchange refuses anonymous callers."""
        response = client.post("/api/auth/ios-token")
        assert response.status_code == 401


def test_health(client):
    """Test that the health endpoint answers without credentials."""
    assert client.get("/health").json() == {"status": "healthy", "database": "ok"}
