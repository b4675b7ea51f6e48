import json
from io import StringIO
from unittest import mock

import pytest
import requests
from django.core.management import CommandError, call_command
from firebase_admin import auth

from accounts.services import USERS_COLLECTION, OtpError, OtpSessionStore, get_otp_sessions


@pytest.fixture
def msg91(settings):
    settings.MSG91_AUTHKEY = "key"
    settings.MSG91_TEMPLATE_ID = "template"
    settings.MSG91_API_BASE = "https://control.msg91.com/api/v5"


def gateway_response(payload):
    response = mock.Mock()
    response.json.return_value = payload
    return response


def post_json(client, url, data):
    return client.post(url, data=json.dumps(data), content_type="application/json")


class TestOtpSessionStore:
    def test_sessions_expire_after_ttl(self):
        now = [0.0]
        sessions = OtpSessionStore(ttl_seconds=600, clock=lambda: now[0])
        sessions.put("98000", "s-1")

        now[0] = 599
        assert sessions.get("98000") == "s-1"
        now[0] = 600
        assert sessions.get("98000") is None
        assert len(sessions) == 0

    def test_purge_expired(self):
        now = [0.0]
        sessions = OtpSessionStore(ttl_seconds=10, clock=lambda: now[0])
        sessions.put("a", "1")
        now[0] = 5
        sessions.put("b", "2")
        now[0] = 12
        assert sessions.purge_expired() == 1
        assert sessions.pop("b") == "2"
        assert len(sessions) == 0


class TestSendOtp:
    def test_success_stores_session(self, client, msg91):
        with mock.patch("accounts.services.requests.get",
                        return_value=gateway_response({"type": "success", "session": "sess-9"})) as get:
            response = post_json(client, "/api/send-otp", {"mobile": "919800000000"})

        assert response.status_code == 200
        assert response.json() == {"type": "success", "message": "OTP sent successfully."}
        assert get.call_args.kwargs["params"]["mobile"] == "919800000000"
        assert get_otp_sessions().get("919800000000") == "sess-9"

    def test_missing_mobile(self, client, msg91):
        response = post_json(client, "/api/send-otp", {})
        assert response.status_code == 400
        assert response.json()["type"] == "error"

    def test_gateway_refusal(self, client, msg91):
        with mock.patch("accounts.services.requests.get",
                        return_value=gateway_response({"type": "error", "message": "Invalid template"})):
            response = post_json(client, "/api/send-otp", {"mobile": "1"})
        assert response.status_code == 500
        assert response.json()["message"] == "Invalid template"

    def test_network_failure(self, client, msg91):
        with mock.patch("accounts.services.requests.get",
                        side_effect=requests.exceptions.ConnectionError("down")):
            response = post_json(client, "/api/send-otp", {"mobile": "1"})
        assert response.status_code == 500
        assert response.json()["message"] == "An error occurred on the server."


class TestVerifyOtp:
    def test_success_consumes_session(self, client, msg91):
        get_otp_sessions().put("1", "sess-1")
        with mock.patch("accounts.services.requests.post",
                        return_value=gateway_response({"type": "success"})) as post:
            response = post_json(client, "/api/verify-otp", {"mobile": "1", "otp": "1234"})

        assert response.status_code == 200
        assert post.call_args.kwargs["params"]["session"] == "sess-1"
        assert get_otp_sessions().get("1") is None

    def test_without_session(self, client, msg91):
        response = post_json(client, "/api/verify-otp", {"mobile": "1", "otp": "1234"})
        assert response.status_code == 400
        assert response.json()["message"] == "OTP session not found or expired."

    def test_wrong_code_keeps_session(self, client, msg91):
        get_otp_sessions().put("1", "sess-1")
        with mock.patch("accounts.services.requests.post",
                        return_value=gateway_response({"type": "error", "message": "OTP not match"})):
            response = post_json(client, "/api/verify-otp", {"mobile": "1", "otp": "0000"})

        assert response.status_code == 400
        assert response.json()["message"] == "OTP not match"
        assert get_otp_sessions().get("1") == "sess-1"

    def test_missing_code(self, client, msg91):
        response = post_json(client, "/api/verify-otp", {"mobile": "1"})
        assert response.status_code == 400


def test_verify_raises_otp_error_without_message(msg91):
    from accounts.services import Msg91Service

    with mock.patch("accounts.services.requests.post", return_value=gateway_response({"type": "error"})):
        with pytest.raises(OtpError, match="Invalid OTP."):
            Msg91Service().verify_otp("1", "0000", "sess")


class TestSetAdminCommand:
    def test_grants_claim_and_flags_profile(self, store):
        out = StringIO()
        user = mock.Mock(uid="uid-1", email="chef@example.com", custom_claims={"staff": True})
        with mock.patch("accounts.services.initialize_firebase"), \
                mock.patch("accounts.services.auth") as fake_auth:
            fake_auth.get_user_by_email.return_value = user
            call_command("set_admin", "chef@example.com", stdout=out)

        fake_auth.set_custom_user_claims.assert_called_once_with("uid-1", {"staff": True, "admin": True})
        assert store.get(USERS_COLLECTION, "uid-1") == {"email": "chef@example.com", "isAdmin": True}
        assert "They are now an admin" in out.getvalue()

    def test_unknown_user(self):
        with mock.patch("accounts.services.initialize_firebase"), \
                mock.patch("accounts.services.auth.get_user_by_email",
                           side_effect=auth.UserNotFoundError("no user")):
            with pytest.raises(CommandError, match="No Firebase user"):
                call_command("set_admin", "ghost@example.com")



def test_new_sessions_evict_stale_ones():
    now = [0.0]
    sessions = OtpSessionStore(ttl_seconds=1, clock=lambda: now[0])
    for i in range(1000):
        sessions.put(f"9800{i}", f"s-{i}")

    now[0] = 100
    sessions.put("9999", "fresh")

    assert len(sessions) == 1
    assert sessions.get("9999") == "fresh"


@pytest.mark.parametrize("url", ["/api/send-otp", "/api/verify-otp"])
def test_non_object_body_is_rejected(client, msg91, url):
    response = post_json(client, url, ["x"])
    assert response.status_code == 400
    assert response.json() == {"type": "error", "message": "Request body must be a JSON object."}
