"""
Tests for custom exception classes and the error envelope

Tests exception status codes, error codes, details, and how the
handlers render them.
"""

import json

import pytest
from fastapi import status
from starlette.requests import Request

from app.exception_handlers import contentflow_exception_handler, create_error_response, get_error_type
from app.exceptions import (
    AccessDeniedError,
    AuthenticationError,
    ConcurrentModificationError,
    ContentFlowError,
    DeliveryError,
    DraftNotFoundError,
    DuplicateResourceError,
    ErrorCode,
    IdeaNotFoundError,
    ImmutableResourceError,
    InvalidTransitionError,
    LimitExceededError,
    NoOrganizationContextError,
    NotApprovedError,
    OrganizationNotFoundError,
    PermanentDeliveryError,
    ResourceNotFoundError,
    TransientDeliveryError,
    ValidationError,
)


def make_request(path: str = "/api/v1/drafts/12/transitions") -> Request:
    return Request({"type": "http", "method": "POST", "path": path, "headers": [], "query_string": b""})


class TestContentFlowError:
    """Test base ContentFlowError class"""

    def test_defaults(self):
        exc = ContentFlowError("Something broke")
        assert str(exc) == "Something broke"
        assert exc.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
        assert exc.error_code == ErrorCode.INTERNAL_ERROR
        assert exc.details == {}


class TestErrorTaxonomy:
    @pytest.mark.parametrize(
        "exc,status_code,error_code",
        [
            (AuthenticationError(), 401, ErrorCode.AUTH_FAILED),
            (AccessDeniedError(), 403, ErrorCode.ACCESS_DENIED),
            (NoOrganizationContextError(), 400, ErrorCode.NO_ORGANIZATION_CONTEXT),
            (OrganizationNotFoundError("acme"), 404, ErrorCode.RESOURCE_NOT_FOUND),
            (IdeaNotFoundError(3), 404, ErrorCode.RESOURCE_NOT_FOUND),
            (DraftNotFoundError(4), 404, ErrorCode.RESOURCE_NOT_FOUND),
            (ValidationError("bad"), 400, ErrorCode.VALIDATION_FAILED),
            (DuplicateResourceError("Organization", "slug", "acme"), 409, ErrorCode.DUPLICATE_RESOURCE),
            (InvalidTransitionError("ContentDraft", "approved", "approve"), 409, ErrorCode.INVALID_TRANSITION),
            (ConcurrentModificationError("ContentDraft", 4), 409, ErrorCode.CONCURRENT_MODIFICATION),
            (NotApprovedError(4, "draft"), 409, ErrorCode.NOT_APPROVED),
            (ImmutableResourceError("locked"), 409, ErrorCode.RESOURCE_LOCKED),
            (LimitExceededError("max_users", 5), 409, ErrorCode.LIMIT_EXCEEDED),
        ],
    )
    def test_status_and_error_codes(self, exc, status_code, error_code):
        assert isinstance(exc, ContentFlowError)
        assert exc.status_code == status_code
        assert exc.error_code == error_code

    def test_not_found_details(self):
        exc = DraftNotFoundError(42)
        assert isinstance(exc, ResourceNotFoundError)
        assert exc.message == "ContentDraft with id '42' not found"
        assert exc.details == {"resource_type": "ContentDraft", "resource_id": 42}

    def test_validation_field(self):
        exc = ValidationError("Rating must be between 1 and 5", field="rating")
        assert exc.details == {"field": "rating"}

    def test_invalid_transition_details(self):
        exc = InvalidTransitionError("ContentDraft", "approved", "approve")
        assert exc.details["current_status"] == "approved"
        assert "approve" in exc.message

    def test_concurrent_modification_expected_status(self):
        assert "expected_status" not in ConcurrentModificationError("Idea", 1).details
        assert ConcurrentModificationError("Idea", 1, "pending").details["expected_status"] == "pending"


class TestDeliveryErrors:
    def test_delivery_errors_are_not_api_errors(self):
        assert not issubclass(DeliveryError, ContentFlowError)
        assert issubclass(TransientDeliveryError, DeliveryError)
        assert issubclass(PermanentDeliveryError, DeliveryError)

    def test_status_code_is_kept(self):
        exc = TransientDeliveryError("rate limited", status_code=429)
        assert exc.status_code == 429
        assert str(exc) == "rate limited"


class TestErrorEnvelope:
    def test_create_error_response(self):
        response = create_error_response(409, "Conflict happened", ErrorCode.INVALID_TRANSITION, {"a": 1}, "/x")
        body = json.loads(response.body)
        assert body == {
            "error": {
                "status_code": 409,
                "message": "Conflict happened",
                "type": "Conflict",
                "error_code": "INVALID_TRANSITION",
                "details": {"a": 1},
                "path": "/x",
            }
        }

    def test_error_types(self):
        assert get_error_type(403) == "Forbidden"
        assert get_error_type(418) == "Error"

    async def test_handler_renders_domain_errors(self):
        exc = InvalidTransitionError("ContentDraft", "approved", "approve")
        response = await contentflow_exception_handler(make_request(), exc)
        body = json.loads(response.body)

        assert response.status_code == 409
        assert body["error"]["error_code"] == "INVALID_TRANSITION"
        assert body["error"]["path"] == "/api/v1/drafts/12/transitions"

    async def test_authentication_errors_challenge(self):
        response = await contentflow_exception_handler(make_request("/api/v1/ideas"), AuthenticationError())
        assert response.status_code == 401
        assert response.headers["WWW-Authenticate"] == "Bearer"
