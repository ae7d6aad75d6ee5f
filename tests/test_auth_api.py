"""HTTP tests for sign-in, sessions and password changes."""

from datetime import timedelta

from conftest import PASSWORD, auth_header, make_user

from nexus.models.company import Company
from nexus.models.user import User
from nexus.utils.base.time import utcnow


def _login(client, email, password=PASSWORD, **extra):
    return client.post("/api/auth/login", json={"email": email, "password": password, **extra})


def _other_code(code: str) -> str:
    return f"{(int(code) + 1) % 1_000_000:06d}"


def test_login_returns_session(client, acme):
    company, _ = acme
    user = make_user(company, "dev@acme.com")

    response = _login(client, "DEV@acme.com")
    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["token"]
    assert body["user"]["email"] == "dev@acme.com"
    assert body["user"]["company"]["name"] == "Acme"
    assert "password" not in body["user"]
    assert "mfa_otp" not in body["user"]

    user.reload()
    assert user.last_login is not None


def test_unknown_email_and_wrong_password_look_alike(client, acme):
    company, _ = acme
    make_user(company, "dev@acme.com")

    unknown = _login(client, "nobody@acme.com", "Wr0ng!pass")
    wrong = _login(client, "dev@acme.com", "Wr0ng!pass")
    assert unknown.status_code == wrong.status_code == 401
    assert unknown.json() == wrong.json() == {"success": False, "message": "Invalid email or password"}


def test_inactive_user_cannot_login(client, acme):
    company, _ = acme
    user = make_user(company, "dev@acme.com")
    user.is_active = False
    user.save()
    assert _login(client, "dev@acme.com").status_code == 401


def test_lock_after_five_failures(client, acme):
    company, _ = acme
    user = make_user(company, "dev@acme.com")

    for _ in range(5):
        assert _login(client, "dev@acme.com", "Wr0ng!pass").status_code == 401

    locked = _login(client, "dev@acme.com")
    assert locked.status_code == 423
    assert locked.json()["success"] is False

    user.reload()
    assert user.login_attempts == 5


def test_success_resets_failure_counter(client, acme):
    company, _ = acme
    user = make_user(company, "dev@acme.com")
    _login(client, "dev@acme.com", "Wr0ng!pass")
    _login(client, "dev@acme.com", "Wr0ng!pass")

    assert _login(client, "dev@acme.com").status_code == 200
    user.reload()
    assert user.login_attempts == 0


def test_expired_lock_allows_login(client, acme):
    company, _ = acme
    user = make_user(company, "dev@acme.com")
    User.objects(id=user.id).update_one(set__login_attempts=5, set__lock_until=utcnow() - timedelta(minutes=1))

    assert _login(client, "dev@acme.com").status_code == 200


def test_mfa_two_step_login(client, mailer, acme):
    company, _ = acme
    make_user(company, "dev@acme.com", mfa=True)

    first = _login(client, "dev@acme.com")
    assert first.status_code == 200
    assert first.json() == {"success": False, "requiresMFA": True, "message": "MFA code sent to your email"}

    code = mailer.last_code("dev@acme.com")
    second = _login(client, "dev@acme.com", mfaCode=code)
    assert second.status_code == 200
    assert second.json()["token"]


def test_mfa_code_is_single_use(client, mailer, acme):
    company, _ = acme
    make_user(company, "dev@acme.com", mfa=True)
    _login(client, "dev@acme.com")
    code = mailer.last_code("dev@acme.com")

    assert _login(client, "dev@acme.com", mfaCode=code).status_code == 200
    replay = _login(client, "dev@acme.com", mfaCode=code)
    assert replay.status_code == 400
    assert replay.json()["message"] == "No OTP setup in progress"


def test_wrong_mfa_code_counts_as_failure(client, mailer, acme):
    company, _ = acme
    user = make_user(company, "dev@acme.com", mfa=True)
    _login(client, "dev@acme.com")
    code = mailer.last_code("dev@acme.com")

    response = _login(client, "dev@acme.com", mfaCode=_other_code(code))
    assert response.status_code == 401
    assert response.json()["message"] == "Invalid MFA code"
    user.reload()
    assert user.login_attempts == 1
    assert user.mfa_otp is not None


def test_malformed_mfa_code(client, mailer, acme):
    company, _ = acme
    make_user(company, "dev@acme.com", mfa=True)
    _login(client, "dev@acme.com")
    assert _login(client, "dev@acme.com", mfaCode="12ab56").status_code == 400


def test_expired_mfa_code(client, mailer, acme):
    company, _ = acme
    user = make_user(company, "dev@acme.com", mfa=True)
    _login(client, "dev@acme.com")
    code = mailer.last_code("dev@acme.com")
    User.objects(id=user.id).update_one(set__mfa_otp_expires=utcnow() - timedelta(seconds=1))

    response = _login(client, "dev@acme.com", mfaCode=code)
    assert response.status_code == 400
    assert response.json()["message"] == "OTP expired"


def test_undeliverable_mfa_code_is_dropped(client, mailer, acme):
    company, _ = acme
    user = make_user(company, "dev@acme.com", mfa=True)
    mailer.fail = True

    response = _login(client, "dev@acme.com")
    assert response.status_code == 502
    user.reload()
    assert user.mfa_otp is None
    assert user.mfa_otp_expires is None


def test_unverified_user_gets_verification_code(client, mailer, acme):
    company, _ = acme
    user = make_user(company, "lead@acme.com", verified=False)

    response = _login(client, "lead@acme.com")
    assert response.status_code == 200
    body = response.json()
    assert body["success"] is False
    assert body["requiresEmailVerification"] is True
    assert body["userId"] == str(user.id)
    assert "token" not in body

    code = mailer.last_code("lead@acme.com", kind="verification")
    verified = client.post("/api/auth/verify-email", json={"userId": str(user.id), "otp": code})
    assert verified.status_code == 200
    assert verified.json()["token"]
    user.reload()
    assert user.email_verified is True
    assert user.email_verification_otp is None


def test_verify_email_wrong_code(client, mailer, acme):
    company, _ = acme
    user = make_user(company, "lead@acme.com", verified=False)
    _login(client, "lead@acme.com")
    code = mailer.last_code("lead@acme.com", kind="verification")

    response = client.post("/api/auth/verify-email", json={"userId": str(user.id), "otp": _other_code(code)})
    assert response.status_code == 400
    assert response.json()["message"] == "Invalid OTP"
    user.reload()
    assert user.email_verified is False


def test_resend_verification_is_silent_for_unknown_email(client, mailer, acme):
    company, _ = acme
    make_user(company, "lead@acme.com", verified=False)

    unknown = client.post("/api/auth/resend-verification", json={"email": "nobody@acme.com"})
    known = client.post("/api/auth/resend-verification", json={"email": "lead@acme.com"})
    assert unknown.status_code == known.status_code == 200
    assert unknown.json() == known.json()
    assert [to for _, to, _ in mailer.codes] == ["lead@acme.com"]


def test_verify_requires_bearer(client):
    response = client.get("/api/auth/verify")
    assert response.status_code == 401
    assert response.json() == {"success": False, "message": "Access token is required"}


def test_verify_rejects_garbage_token(client):
    response = client.get("/api/auth/verify", headers={"Authorization": "Bearer not-a-jwt"})
    assert response.status_code == 401
    assert response.json()["message"] == "Invalid token"


def test_verify_rejects_expired_token(client, acme):
    _, admin = acme
    response = client.get("/api/auth/verify", headers=auth_header(admin, utcnow() - timedelta(days=8)))
    assert response.status_code == 401
    assert response.json()["message"] == "Token has expired"


def test_verify_rejects_deactivated_company(client, acme):
    company, admin = acme
    Company.objects(id=company.id).update_one(set__is_active=False)
    assert client.get("/api/auth/verify", headers=auth_header(admin)).status_code == 401


def test_verify_rejects_locked_account(client, acme):
    _, admin = acme
    User.objects(id=admin.id).update_one(set__lock_until=utcnow() + timedelta(hours=1))
    assert client.get("/api/auth/verify", headers=auth_header(admin)).status_code == 423


def test_password_change_invalidates_older_tokens(client, acme):
    _, admin = acme
    old = auth_header(admin, utcnow() - timedelta(hours=1))

    response = client.put(
        "/api/auth/password",
        json={"currentPassword": PASSWORD, "newPassword": "N3w!Passw0rd"},
        headers=old,
    )
    assert response.status_code == 200
    fresh = {"Authorization": f"Bearer {response.json()['token']}"}

    rejected = client.get("/api/auth/verify", headers=old)
    assert rejected.status_code == 401
    assert rejected.json()["message"] == "User recently changed password. Please log in again"
    assert client.get("/api/auth/verify", headers=fresh).status_code == 200

    assert _login(client, "admin@acme.com").status_code == 401
    assert _login(client, "admin@acme.com", "N3w!Passw0rd").status_code == 200


def test_password_change_needs_current_password(client, acme):
    _, admin = acme
    response = client.put(
        "/api/auth/password",
        json={"currentPassword": "Wr0ng!pass", "newPassword": "N3w!Passw0rd"},
        headers=auth_header(admin),
    )
    assert response.status_code == 400
    assert response.json()["message"] == "Current password is incorrect"


def test_password_change_rejects_weak_password(client, acme):
    _, admin = acme
    response = client.put(
        "/api/auth/password",
        json={"currentPassword": PASSWORD, "newPassword": "weak"},
        headers=auth_header(admin),
    )
    assert response.status_code == 400
    assert response.json()["success"] is False


def test_token_minted_just_before_password_change_is_rejected(client, acme):
    _, admin = acme
    recent = auth_header(admin)

    response = client.put(
        "/api/auth/password",
        json={"currentPassword": PASSWORD, "newPassword": "N3w!Passw0rd"},
        headers=recent,
    )
    assert response.status_code == 200

    rejected = client.get("/api/auth/verify", headers=recent)
    assert rejected.status_code == 401
    assert rejected.json()["message"] == "User recently changed password. Please log in again"

    fresh = {"Authorization": f"Bearer {response.json()['token']}"}
    assert client.get("/api/auth/verify", headers=fresh).status_code == 200
    admin.reload()
    assert admin.token_version == "2"
