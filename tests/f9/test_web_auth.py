"""Tests for health, auth, profile and rate limiting endpoints (F9)."""

from readspeed.config.app_config import APP_VERSION
from readspeed.core.rate_limiting import RateLimiter

PNG = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32


class TestHealthEndpoint:
    """Tests for GET /health."""

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert data["version"] == APP_VERSION
        assert data["database"] == "connected"
        assert "T" in data["timestamp"]

    def test_health_not_rate_limited(self, client):
        assert "X-RateLimit-Limit" not in client.get("/health").headers


class TestAuthEndpoints:
    """Tests for /api/auth."""

    def test_signup_sets_cookie(self, client):
        response = client.post(
            "/api/auth/signup", json={"email": "New@Example.com", "password": "secret123"}
        )
        assert response.status_code == 201
        assert response.json()["email"] == "new@example.com"
        assert "readspeed-session" in response.cookies

        session = client.get("/api/auth/session")
        assert session.status_code == 200
        assert session.json()["email"] == "new@example.com"

    def test_signup_duplicate(self, client, make_user):
        make_user(email="taken@example.com")
        response = client.post(
            "/api/auth/signup", json={"email": "taken@example.com", "password": "secret123"}
        )
        assert response.status_code == 409
        assert response.json()["code"] == "user_exists"

    def test_signin_wrong_password(self, client, make_user):
        make_user(email="bo@example.com")
        response = client.post(
            "/api/auth/signin", json={"email": "bo@example.com", "password": "nope-nope"}
        )
        assert response.status_code == 401
        assert response.json()["code"] == "invalid_credentials"

    def test_signout_revokes(self, client, login):
        _, headers = login()
        assert client.post("/api/auth/signout", headers=headers).status_code == 200
        response = client.get("/api/auth/session", headers=headers)
        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid or expired session"

    def test_requires_authentication(self, client):
        response = client.get("/api/profile")
        assert response.status_code == 401
        assert response.json()["detail"] == "Authentication required"

    def test_otp_same_answer_for_unknown_email(self, client):
        response = client.post("/api/auth/otp", json={"email": "ghost@example.com"})
        assert response.status_code == 200
        assert "code has been sent" in response.json()["message"]

    def test_auth_rate_limit(self, client):
        client.app.state.auth_limiter = RateLimiter(1, 60_000, name="auth")
        body = {"email": "ghost@example.com", "password": "secret123"}
        client.post("/api/auth/signin", json=body)
        response = client.post("/api/auth/signin", json=body)
        assert response.status_code == 429
        assert response.headers["X-RateLimit-Remaining"] == "0"


class TestProfileEndpoints:
    """Tests for /api/profile."""

    def test_get_and_update(self, client, login):
        profile, headers = login()
        response = client.get("/api/profile", headers=headers)
        assert response.status_code == 200
        assert response.json()["id"] == profile.id

        response = client.put(
            "/api/profile", json={"full_name": "  Ada  ", "city": ""}, headers=headers
        )
        assert response.status_code == 200
        assert response.json()["full_name"] == "Ada"
        assert response.json()["city"] is None

    def test_avatar_upload_served(self, client, login):
        _, headers = login()
        response = client.post(
            "/api/profile/avatar",
            files={"file": ("me.png", PNG, "image/png")},
            headers=headers,
        )
        assert response.status_code == 200
        url = response.json()["avatar_url"]
        assert url.startswith("/storage/avatars/")

        served = client.get(url)
        assert served.status_code == 200
        assert served.content == PNG

    def test_avatar_rejects_type(self, client, login):
        _, headers = login()
        response = client.post(
            "/api/profile/avatar",
            files={"file": ("me.txt", b"hello", "text/plain")},
            headers=headers,
        )
        assert response.status_code == 400

    def test_storage_traversal(self, client):
        assert client.get("/storage/avatars/..%2F..%2Fdb%2Ftest.db").status_code == 404

    def test_features(self, client, login):
        _, headers = login(tier="pro")
        response = client.get("/api/profile/features", headers=headers)
        assert response.status_code == 200
        assert response.json()["tier"] == "pro"


class TestApiRateLimit:
    """Tests for the /api rate-limit middleware."""

    def test_headers_present(self, client, login):
        _, headers = login()
        response = client.get("/api/profile", headers=headers)
        assert response.headers["X-RateLimit-Limit"] == "10000"

    def test_too_many_requests(self, client, login):
        _, headers = login()
        client.app.state.api_limiter = RateLimiter(2, 60_000)
        codes = [client.get("/api/profile", headers=headers).status_code for _ in range(3)]
        assert codes == [200, 200, 429]
