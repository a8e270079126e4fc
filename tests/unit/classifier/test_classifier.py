"""Tests for status validation and failure classification.

Rules, in order:
1. Caller/handle abort -> UserCancelled (terminal)
2. Timeout abort       -> AttemptTimedOut (retryable)
3. Status rejected     -> ValidationFailed (terminal)
4. Anything else       -> TransportFailed (retryable)
"""

from __future__ import annotations

import httpx
import pytest

from fetchguard.classifier import (
    AttemptTimedOut,
    OutcomeKind,
    TransportFailed,
    UserCancelled,
    ValidationFailed,
    check_status,
    classify,
    diagnostic_body,
    parse_status_rule,
)
from fetchguard.shared.errors import AbortError, ConfigurationError, ValidationFailedError
from fetchguard.shared.types import AbortSource, BodyKind


def _is_teapot(status: int) -> bool:
    return status == 418


class TestParseStatusRule:
    @pytest.mark.parametrize("value", [None, "ok", 204, _is_teapot])
    def test_accepted(self, value: object) -> None:
        assert parse_status_rule(value) is value

    @pytest.mark.parametrize("value", ["2xx", 2.0, True, [200]])
    def test_rejected(self, value: object) -> None:
        with pytest.raises(ConfigurationError, match="validate_status"):
            parse_status_rule(value)


class TestCheckStatus:
    def test_no_rule_accepts_anything(self) -> None:
        check_status(httpx.Response(500), None)

    @pytest.mark.parametrize("status", [200, 201, 299])
    def test_ok_accepts_2xx(self, status: int) -> None:
        check_status(httpx.Response(status), "ok")

    @pytest.mark.parametrize("status", [199, 301, 404, 500])
    def test_ok_rejects_others(self, status: int) -> None:
        with pytest.raises(ValidationFailedError):
            check_status(httpx.Response(status), "ok")

    def test_exact_number(self) -> None:
        check_status(httpx.Response(204), 204)
        with pytest.raises(ValidationFailedError):
            check_status(httpx.Response(200), 204)

    def test_predicate(self) -> None:
        check_status(httpx.Response(418), _is_teapot)
        with pytest.raises(ValidationFailedError) as exc_info:
            check_status(httpx.Response(200), _is_teapot)
        assert exc_info.value.status == 200

    def test_predicate_exception_propagates(self) -> None:
        def broken(status: int) -> bool:
            raise KeyError(status)

        with pytest.raises(KeyError):
            check_status(httpx.Response(200), broken)


class TestDiagnosticBody:
    def test_json(self) -> None:
        assert diagnostic_body(httpx.Response(400, json={"error": "x"}), BodyKind.JSON) == {"error": "x"}

    def test_invalid_json_is_none(self) -> None:
        assert diagnostic_body(httpx.Response(400, text="<html>"), BodyKind.JSON) is None

    def test_file_is_none(self) -> None:
        assert diagnostic_body(httpx.Response(400, content=b"x"), BodyKind.FILE) is None


class TestClassify:
    @pytest.mark.parametrize("source", [AbortSource.CALLER, AbortSource.HANDLE])
    def test_user_abort(self, source: AbortSource) -> None:
        error = AbortError(source=source)
        outcome = classify(error, timeout_fired=False)
        assert isinstance(outcome, UserCancelled)
        assert outcome.source is source
        assert outcome.kind is OutcomeKind.USER_CANCELLED
        assert not outcome.retryable

    def test_timeout_abort(self) -> None:
        outcome = classify(AbortError(source=AbortSource.TIMEOUT), timeout_fired=True)
        assert isinstance(outcome, AttemptTimedOut)
        assert outcome.retryable

    def test_sourceless_abort_after_timeout(self) -> None:
        assert isinstance(classify(AbortError(), timeout_fired=True), AttemptTimedOut)

    def test_sourceless_abort_is_transport_failure(self) -> None:
        outcome = classify(AbortError(), timeout_fired=False)
        assert isinstance(outcome, TransportFailed)
        assert outcome.retryable

    def test_validation_attaches_body(self) -> None:
        response = httpx.Response(400, json={"detail": "bad"})
        error = ValidationFailedError(400, response)
        outcome = classify(error, timeout_fired=False, response_type=BodyKind.JSON)
        assert isinstance(outcome, ValidationFailed)
        assert not outcome.retryable
        assert outcome.body == {"detail": "bad"}
        assert error.body == {"detail": "bad"}
        assert outcome.response is response

    def test_network_error(self) -> None:
        cause = httpx.ConnectError("refused")
        outcome = classify(cause, timeout_fired=False)
        assert isinstance(outcome, TransportFailed)
        assert outcome.cause is cause
