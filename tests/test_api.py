"""
HTTP-level tests: guards, status codes, cookies and the end-to-end scenarios.
"""
from datetime import datetime, timedelta
from dashboard import config
from dashboard.models.audit import AuditLog
from dashboard.models.enums import AuditAction
from dashboard.models.session import SessionRecord
from dashboard.services.errors import ServerFault
from dashboard.services.sessions import SessionStore

USER_PASSWORD = "user-secret"


def login(client, username, password):
    return client.post("/api/auth/login", json={"username": username, "password": password})


def register(client, username, password, invite_code):
    return client.post(
        "/api/auth/register",
        json={"username": username, "password": password, "inviteCode": invite_code}
    )


def session_cookies(response):
    prefix = f"{config.SESSION_COOKIE_NAME}="
    return [h for h in response.headers.get_list("set-cookie") if h.startswith(prefix)]


class TestGuards:
    """requireAuth -> 401, requireAdmin -> 403 for non-admins."""

    def test_anonymous_requests_are_unauthorized(self, client):
        for method, path in [
            ("get", "/api/auth/me"),
            ("post", "/api/auth/logout"),
            ("get", "/api/invite-codes"),
            ("get", "/api/users"),
            ("get", "/api/audit-logs"),
            ("get", "/api/download/akcent-loader"),
        ]:
            response = getattr(client, method)(path)
            assert response.status_code == 401, path
            assert response.json() == {"message": "Unauthorized"}

    def test_non_admin_cannot_list_invite_codes(self, user_client):
        """
        SCENARIO: GET /api/invite-codes as a non-admin authenticated user -> 403.
        """
        response = user_client.get("/api/invite-codes")

        assert response.status_code == 403
        assert response.json() == {"message": "Forbidden"}

    def test_non_admin_is_forbidden_everywhere_admin_only(self, user_client, admin_user):
        assert user_client.post("/api/invite-codes", json={}).status_code == 403
        assert user_client.post("/api/invite-codes/1/revoke").status_code == 403
        assert user_client.get("/api/users").status_code == 403
        assert user_client.post(f"/api/users/{admin_user.id}/toggle").status_code == 403
        assert user_client.get("/api/audit-logs").status_code == 403

    def test_bogus_cookie_is_unauthorized(self, client):
        response = client.get(
            "/api/auth/me", headers={"Cookie": f"{config.SESSION_COOKIE_NAME}=forged"}
        )

        assert response.status_code == 401


class TestAuthEndpoints:

    def test_register_returns_sanitized_user_and_session(self, client, db_session, make_invite):
        make_invite(code="JOINUS", uses=2)

        response = register(client, "newbie", "s3cret!", "JOINUS")

        assert response.status_code == 200
        body = response.json()
        assert body["username"] == "newbie"
        assert body["role"] == "user"
        assert body["active"] is True
        assert "createdAt" in body
        assert "passwordHash" not in body and "password_hash" not in body
        assert config.SESSION_COOKIE_NAME in response.cookies

        me = client.get("/api/auth/me")
        assert me.status_code == 200
        assert me.json()["id"] == body["id"]

    def test_register_invalid_shape_is_400(self, client, make_invite):
        make_invite(code="JOINUS")

        response = register(client, "ab", "s3cret!", "JOINUS")

        assert response.status_code == 400
        assert response.json() == {"message": "Invalid input data"}

    def test_register_refusals_are_400(self, client, regular_user, make_invite):
        make_invite(code="REVOKED", revoked=True)

        taken = register(client, regular_user.username, "s3cret!", "REVOKED")
        revoked = register(client, "someone", "s3cret!", "REVOKED")
        unknown = register(client, "someone", "s3cret!", "MISSING")

        assert taken.status_code == revoked.status_code == unknown.status_code == 400
        assert taken.json() == {"message": "Username already taken"}
        assert revoked.json() == {"message": "Invite code has been revoked"}
        assert unknown.json() == {"message": "Invalid invite code"}

    def test_single_use_code_scenario(self, client, db_session, make_invite):
        """
        SCENARIO: uses=1; A registers -> 0 left; B is refused as exhausted.
        """
        invite = make_invite(code="ONCE", uses=1)

        assert register(client, "user_a", "password", "ONCE").status_code == 200
        db_session.refresh(invite)
        assert invite.uses_remaining == 0

        second = register(client, "user_b", "password", "ONCE")
        assert second.status_code == 400
        assert second.json() == {"message": "Invite code has no uses remaining"}

    def test_login_does_not_reveal_usernames(self, client, regular_user):
        """
        INVARIANT: Unknown username and wrong password give identical responses.
        """
        unknown = login(client, "ghost", USER_PASSWORD)
        wrong = login(client, regular_user.username, "nope-nope")

        assert unknown.status_code == wrong.status_code == 401
        assert unknown.json() == wrong.json() == {"message": "Invalid credentials"}

    def test_login_with_empty_fields_is_400(self, client):
        assert login(client, "", "").status_code == 400

    def test_deactivated_login_is_403_without_session(self, client, db_session, regular_user):
        """
        SCENARIO: Correct credentials of a deactivated account -> 403, no session.
        """
        regular_user.active = False
        db_session.commit()

        response = login(client, regular_user.username, USER_PASSWORD)

        assert response.status_code == 403
        assert response.json() == {"message": "Account has been deactivated"}
        assert config.SESSION_COOKIE_NAME not in response.cookies
        assert db_session.query(SessionRecord).count() == 0

    def test_session_cookie_attributes(self, client, regular_user):
        response = login(client, regular_user.username, USER_PASSWORD)

        set_cookie = response.headers["set-cookie"].lower()
        assert "httponly" in set_cookie
        assert "samesite=lax" in set_cookie
        assert f"max-age={30 * 24 * 60 * 60}" in set_cookie

    def test_authenticated_requests_refresh_the_cookie(self, user_client):
        response = user_client.get("/api/auth/me")

        assert response.status_code == 200
        assert config.SESSION_COOKIE_NAME in response.cookies

    def test_logout_destroys_session(self, user_client, db_session):
        response = user_client.post("/api/auth/logout")

        assert response.status_code == 200
        assert response.json() == {"message": "Logged out successfully"}
        assert db_session.query(SessionRecord).count() == 0
        assert user_client.get("/api/auth/me").status_code == 401

    def test_logout_session_failure_is_500(self, user_client, monkeypatch):
        def broken_destroy(self, sid):
            raise ServerFault("Failed to logout")

        monkeypatch.setattr(SessionStore, "destroy", broken_destroy)

        response = user_client.post("/api/auth/logout")

        assert response.status_code == 500
        assert response.json() == {"message": "Failed to logout"}

    def test_relogin_sends_a_single_session_cookie(self, user_client, regular_user):
        response = login(user_client, regular_user.username, USER_PASSWORD)

        assert response.status_code == 200
        assert len(session_cookies(response)) == 1
        assert user_client.get("/api/auth/me").status_code == 200

    def test_logout_sends_a_single_clearing_cookie(self, user_client):
        response = user_client.post("/api/auth/logout")

        [cleared] = session_cookies(response)
        assert "max-age=0" in cleared.lower()

    def test_register_while_logged_in_replaces_the_session(self, user_client, db_session, make_invite):
        invite = make_invite(uses=1)

        response = register(user_client, "mallory", "password", invite.code)

        assert response.status_code == 200
        assert len(session_cookies(response)) == 1
        assert db_session.query(SessionRecord).count() == 1
        assert user_client.get("/api/auth/me").json()["username"] == "mallory"

    def test_me_for_vanished_user_is_404(self, user_client, db_session, regular_user):
        db_session.query(SessionRecord).update({SessionRecord.payload: {
            "userId": 9999, "username": "ghost", "role": "user"
        }}, synchronize_session=False)
        db_session.commit()

        response = user_client.get("/api/auth/me")

        assert response.status_code == 404
        assert response.json() == {"message": "User not found"}


class TestInviteCodeEndpoints:

    def test_create_with_generated_code(self, admin_client, admin_user):
        response = admin_client.post("/api/invite-codes", json={})

        assert response.status_code == 200
        body = response.json()
        assert body["code"].isalnum() and body["code"].isupper()
        assert body["uses"] == body["usesRemaining"] == 1
        assert body["revoked"] is False
        assert body["createdBy"] == admin_user.id
        assert body["expiresAt"] is None
        assert body["status"] == "active"

    def test_create_with_explicit_code_uses_and_deadline(self, admin_client):
        deadline = (datetime.utcnow() + timedelta(days=7)).replace(microsecond=0)

        response = admin_client.post(
            "/api/invite-codes",
            json={"code": "VIP", "uses": 5, "expiresAt": deadline.isoformat()}
        )

        assert response.status_code == 200
        body = response.json()
        assert body["code"] == "VIP"
        assert body["usesRemaining"] == 5
        assert datetime.fromisoformat(body["expiresAt"]) == deadline

    def test_duplicate_code_is_400(self, admin_client, make_invite):
        make_invite(code="DUPE")

        response = admin_client.post("/api/invite-codes", json={"code": "DUPE"})

        assert response.status_code == 400
        assert response.json() == {"message": "Invite code already exists"}

    def test_zero_uses_is_400(self, admin_client):
        assert admin_client.post("/api/invite-codes", json={"uses": 0}).status_code == 400

    def test_list_newest_first(self, admin_client, db_session, make_invite):
        older = make_invite(code="FIRST")
        older.created_at = datetime.utcnow() - timedelta(hours=1)
        db_session.commit()
        make_invite(code="SECOND")

        response = admin_client.get("/api/invite-codes")

        assert [c["code"] for c in response.json()] == ["SECOND", "FIRST"]

    def test_revoke(self, admin_client, make_invite):
        invite = make_invite(code="BYE", uses=5)

        response = admin_client.post(f"/api/invite-codes/{invite.id}/revoke")

        assert response.status_code == 200
        assert response.json()["revoked"] is True
        assert response.json()["status"] == "revoked"

    def test_revoked_code_refuses_registration(self, admin_client, make_invite):
        """
        SCENARIO: Revoke an unused code with 5 uses -> registration fails as revoked.
        """
        invite = make_invite(code="FIVE", uses=5)
        admin_client.post(f"/api/invite-codes/{invite.id}/revoke")
        admin_client.post("/api/auth/logout")

        response = register(admin_client, "latecomer", "password", "FIVE")

        assert response.status_code == 400
        assert response.json() == {"message": "Invite code has been revoked"}

    def test_revoke_unknown_is_404_and_bad_id_is_400(self, admin_client):
        assert admin_client.post("/api/invite-codes/9999/revoke").status_code == 404
        assert admin_client.post("/api/invite-codes/abc/revoke").status_code == 400


class TestUserEndpoints:

    def test_list_users_strips_password_hash(self, admin_client, regular_user):
        response = admin_client.get("/api/users")

        assert response.status_code == 200
        usernames = {u["username"] for u in response.json()}
        assert usernames == {"admin", "alice"}
        for user in response.json():
            assert set(user) == {"id", "username", "role", "active", "createdAt"}

    def test_toggle_user(self, admin_client, regular_user):
        response = admin_client.post(f"/api/users/{regular_user.id}/toggle")

        assert response.status_code == 200
        assert response.json()["active"] is False

    def test_admin_cannot_toggle_self(self, admin_client, admin_user, db_session):
        """
        INVARIANT: Toggling your own account -> 400 and active unchanged.
        """
        response = admin_client.post(f"/api/users/{admin_user.id}/toggle")

        assert response.status_code == 400
        assert response.json() == {"message": "Cannot deactivate your own account"}
        db_session.refresh(admin_user)
        assert admin_user.active is True

    def test_toggle_unknown_is_404_and_bad_id_is_400(self, admin_client):
        assert admin_client.post("/api/users/9999/toggle").status_code == 404
        assert admin_client.post("/api/users/abc/toggle").status_code == 400


class TestAuditLogEndpoint:

    def test_lists_recent_entries_with_limit(self, admin_client):
        # The admin_client login already wrote one USER_LOGIN entry
        admin_client.post("/api/invite-codes", json={"code": "ONE"})
        admin_client.post("/api/invite-codes", json={"code": "TWO"})

        response = admin_client.get("/api/audit-logs", params={"limit": 2})

        assert response.status_code == 200
        body = response.json()
        assert len(body) == 2
        assert all(e["action"] == "INVITE_CODE_CREATED" for e in body)
        assert set(body[0]) == {"id", "userId", "username", "action", "ip", "timestamp"}

    def test_default_limit_returns_everything_small(self, admin_client):
        response = admin_client.get("/api/audit-logs")

        assert [e["action"] for e in response.json()] == ["USER_LOGIN"]

    def test_limit_is_clamped_not_rejected(self, admin_client, monkeypatch):
        monkeypatch.setattr(config, "AUDIT_LOG_MAX_LIMIT", 2)
        admin_client.post("/api/invite-codes", json={"code": "ONE"})
        admin_client.post("/api/invite-codes", json={"code": "TWO"})

        zero = admin_client.get("/api/audit-logs", params={"limit": 0})
        negative = admin_client.get("/api/audit-logs", params={"limit": -5})
        huge = admin_client.get("/api/audit-logs", params={"limit": 5000})

        assert (zero.status_code, zero.json()) == (200, [])
        assert (negative.status_code, negative.json()) == (200, [])
        assert huge.status_code == 200
        assert len(huge.json()) == 2

    def test_empty_or_garbled_limit_means_default(self, admin_client):
        for raw in ["", "  ", "abc"]:
            response = admin_client.get("/api/audit-logs", params={"limit": raw})

            assert response.status_code == 200, raw
            assert [e["action"] for e in response.json()] == ["USER_LOGIN"]

    def test_client_ip_comes_from_forwarded_header(self, client, db_session, regular_user):
        client.post(
            "/api/auth/login",
            json={"username": regular_user.username, "password": USER_PASSWORD},
            headers={"X-Forwarded-For": "192.0.2.10, 10.0.0.1"}
        )

        audit = db_session.query(AuditLog).one()
        assert audit.ip == "192.0.2.10"


class TestDownload:

    def test_download_streams_file_and_audits(self, user_client, db_session, tmp_path, monkeypatch):
        artifact = tmp_path / "loader.bin"
        artifact.write_bytes(b"MZ\x90\x00payload")
        monkeypatch.setattr(config, "DOWNLOAD_FILE_PATH", artifact)

        response = user_client.get("/api/download/akcent-loader")

        assert response.status_code == 200
        assert response.content == b"MZ\x90\x00payload"
        assert "AkcentLoader.exe" in response.headers["content-disposition"]
        downloads = db_session.query(AuditLog).filter(
            AuditLog.action == AuditAction.FILE_DOWNLOADED
        ).count()
        assert downloads == 1

    def test_missing_artifact_is_404_without_audit(self, user_client, db_session, tmp_path, monkeypatch):
        monkeypatch.setattr(config, "DOWNLOAD_FILE_PATH", tmp_path / "missing.exe")

        response = user_client.get("/api/download/akcent-loader")

        assert response.status_code == 404
        assert response.json() == {"message": "File not found"}
        downloads = db_session.query(AuditLog).filter(
            AuditLog.action == AuditAction.FILE_DOWNLOADED
        ).count()
        assert downloads == 0


def test_health(client):
    assert client.get("/health").json() == {"status": "healthy", "service": "Akcent Dashboard"}
