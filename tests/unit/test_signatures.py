"""Unit tests for error signature matching."""

import pytest
import requests

from mindpal.errors import (
    BackendError,
    ConfigurationError,
    ConnectivityError,
    SessionExpiredError,
    ValidationError,
)
from mindpal.reliability.signatures import (
    error_code,
    error_status,
    is_auth_expiry,
    is_retryable,
)


class TestErrorFields:
    def test_status_from_backend_error(self):
        assert error_status(BackendError("x", status=404)) == 404

    def test_status_from_mapping(self):
        assert error_status({"status": 401}) == 401

    def test_status_from_http_error_response(self):
        response = requests.Response()
        response.status_code = 503
        assert error_status(requests.HTTPError(response=response)) == 503

    def test_code_ignores_internal_error_codes(self):
        assert error_code(ValidationError("x")) is None

    def test_code_prefers_backend_code(self):
        assert error_code(BackendError("x", backend_code="PGRST301")) == "PGRST301"


class TestIsRetryable:
    @pytest.mark.parametrize(
        "error",
        [
            BackendError("Failed to fetch: connection reset"),
            BackendError("Service unavailable", status=503),
            {"status": 500, "message": "internal"},
            TimeoutError("timed out"),
        ],
    )
    def test_transient_errors_retry(self, error):
        assert is_retryable(error)

    @pytest.mark.parametrize(
        "error",
        [
            BackendError("Unauthorized", status=401),
            BackendError("Forbidden", status=403),
            BackendError("JWT expired"),
            BackendError("Invalid Refresh Token: refresh_token not found"),
            {"message": "request failed with 403"},
            ValidationError("bad"),
            ConfigurationError("missing"),
            ConnectivityError("offline"),
            SessionExpiredError(),
        ],
    )
    def test_auth_and_local_errors_do_not_retry(self, error):
        assert not is_retryable(error)


class TestIsAuthExpiry:
    @pytest.mark.parametrize(
        "error",
        [
            BackendError("JWT expired"),
            BackendError("jwt EXPIRED at 12:00"),
            BackendError("whatever", backend_code="PGRST301"),
            {"code": "pgrst301", "message": "JWT invalid"},
            BackendError("Unauthorized: invalid token", status=401),
            BackendError("Unauthorized", status=401, body='{"msg": "bad jwt"}'),
            BackendError("Invalid Refresh Token: refresh_token_not_found"),
            {"code": "refresh_token_not_found"},
            SessionExpiredError(),
        ],
    )
    def test_expiry_signatures(self, error):
        assert is_auth_expiry(error)

    @pytest.mark.parametrize(
        "error",
        [
            None,
            BackendError("Unauthorized", status=401),
            BackendError("Forbidden: token", status=403),
            BackendError("Service unavailable", status=503),
            BackendError("duplicate key value", backend_code="23505"),
            ValueError("token parse failed"),
        ],
    )
    def test_other_errors_are_not_expiry(self, error):
        assert not is_auth_expiry(error)
