"""
Doctor signup, login and bearer-token protection.
"""

from datetime import timedelta

from app.core.security import security_manager


def test_signup_returns_token_and_doctor(client):
    response = client.post(
        "/api/auth/signup-doctor",
        json={
            "name": "Dr. Meredith Grey",
            "email": "Grey@Example.com",
            "password": "s3cret",
            "specialization": "General Surgery",
            "experienceYears": 7,
        },
    )

    assert response.status_code == 201
    body = response.json()
    assert body["token"]
    assert body["doctor"]["email"] == "grey@example.com"
    assert body["doctor"]["name"] == "Dr. Meredith Grey"
    assert "passwordHash" not in body["doctor"]

    payload = security_manager.verify_token(body["token"])
    assert payload["sub"] == body["doctor"]["id"]


def test_signup_rejects_duplicate_email(client, signup):
    signup(email="dup@example.com")
    response = client.post(
        "/api/auth/signup-doctor",
        json={"name": "Someone Else", "email": "dup@example.com", "password": "pw"},
    )

    assert response.status_code == 400
    assert response.json()["error"] == "Email already in use"


def test_signup_requires_name_email_and_password(client):
    response = client.post("/api/auth/signup-doctor", json={"email": "x@example.com"})

    assert response.status_code == 400
    assert "name" in response.json()["error"]
    assert "password" in response.json()["error"]


def test_login_with_valid_credentials(client, signup):
    signup(email="login@example.com", password="right-password", specialization="Neurology")

    response = client.post(
        "/api/auth/login-doctor",
        json={"email": "login@example.com", "password": "right-password"},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["token"]
    assert body["doctor"]["specialization"] == "Neurology"


def test_login_with_wrong_password(client, signup):
    signup(email="login@example.com", password="right-password")

    response = client.post(
        "/api/auth/login-doctor",
        json={"email": "login@example.com", "password": "wrong-password"},
    )

    assert response.status_code == 400
    assert response.json()["error"] == "Invalid credentials"


def test_login_with_unknown_email(client):
    response = client.post(
        "/api/auth/login-doctor",
        json={"email": "nobody@example.com", "password": "whatever"},
    )

    assert response.status_code == 400
    assert response.json()["error"] == "Invalid credentials"


def test_protected_route_without_token(client):
    response = client.get("/api/patients")

    assert response.status_code == 401
    assert response.headers["WWW-Authenticate"] == "Bearer"


def test_protected_route_with_garbage_token(client):
    response = client.get("/api/patients", headers={"Authorization": "Bearer not-a-jwt"})

    assert response.status_code == 401


def test_protected_route_with_expired_token(client, doctor_auth):
    doctor, _ = doctor_auth
    token = security_manager.create_access_token({"sub": doctor["id"]}, expires_delta=timedelta(minutes=-1))

    response = client.get("/api/patients", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 401


def test_token_for_unknown_doctor(client):
    token = security_manager.create_access_token({"sub": "does-not-exist"})

    response = client.get("/api/patients", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 401


def test_error_body_carries_request_id(client):
    response = client.get("/api/patients")

    assert response.json()["requestId"] == response.headers["X-Request-ID"]
