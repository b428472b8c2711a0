from dataclasses import replace

import pytest

import config


def test_root_points_to_graphql(client):
    response = client.get("/")
    assert response.status_code == 200
    assert "/graphql" in response.json()["message"]


def test_check_session_without_cookie(client):
    body = client.get("/check-session").json()
    assert body == {"authenticated": False, "user_id": None, "has_cookie": False}


def test_check_session_after_login(register, login, client):
    user_id = int(register()["user"]["id"])
    login()

    body = client.get("/check-session").json()

    assert body == {"authenticated": True, "user_id": user_id, "has_cookie": True}


def test_cors_preflight_allows_configured_origin_with_credentials(client):
    origin = config.settings.cors_origins[0]
    response = client.options(
        "/graphql",
        headers={
            "Origin": origin,
            "Access-Control-Request-Method": "POST",
            "Access-Control-Request-Headers": "Content-Type, Authorization",
        },
    )

    assert response.status_code == 200
    assert response.headers["access-control-allow-origin"] == origin
    assert response.headers["access-control-allow-credentials"] == "true"


def test_cors_rejects_unknown_origin(client):
    response = client.options(
        "/graphql",
        headers={"Origin": "https://evil.example", "Access-Control-Request-Method": "POST"},
    )
    assert "access-control-allow-origin" not in response.headers


@pytest.mark.parametrize(
    "method, path, kwargs",
    [
        ("get", "/", {}),
        ("post", "/graphql", {"json": {"query": "query { me { id } }"}}),
    ],
)
def test_security_headers_on_every_response(client, method, path, kwargs):
    response = getattr(client, method)(path, **kwargs)

    assert response.status_code == 200
    assert response.headers["x-content-type-options"] == "nosniff"
    assert response.headers["x-frame-options"] == "SAMEORIGIN"
    assert response.headers["referrer-policy"] == "no-referrer"
    assert response.headers["x-permitted-cross-domain-policies"] == "none"
    # Plain-HTTP default deployment: no HSTS
    assert "strict-transport-security" not in response.headers


def test_hsts_sent_when_cookies_are_secure(client, monkeypatch):
    monkeypatch.setattr(config, "settings", replace(config.settings, session_cookie_secure=True))

    response = client.get("/")

    assert response.headers["strict-transport-security"] == "max-age=31536000; includeSubDomains"
