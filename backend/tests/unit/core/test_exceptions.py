"""
Tests for custom exception hierarchy.

WHY: Exception testing ensures:
1. Exceptions serialize correctly without leaking share tokens
2. HTTP status codes map correctly for each quote error
3. Exception handlers produce one error envelope
"""

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from pydantic import BaseModel, Field

from quote_engine.core.exceptions import (
    AppException,
    ComputationFault,
    DuplicateQuoteNumberError,
    ExportError,
    InvalidStateTransitionError,
    LineItemNotFoundError,
    QuoteNotFoundError,
    ResourceNotFoundError,
    TemplateNotFoundError,
    ValidationError,
)
from quote_engine.core.exception_handlers import (
    app_exception_handler,
    generic_exception_handler,
    validation_exception_handler,
)


class TestAppException:
    """Test base AppException class."""

    def test_default_message(self):
        exc = AppException()
        assert exc.message == "An unexpected error occurred"
        assert exc.status_code == 500

    def test_custom_status_code(self):
        exc = AppException(status_code=418)
        assert exc.status_code == 418

    def test_to_dict_basic(self):
        exc = AppException(message="Test error", quote_id=7)
        result = exc.to_dict()

        assert result["error"] == "AppException"
        assert result["message"] == "Test error"
        assert result["status_code"] == 500
        assert result["details"] == {"quote_id": 7}

    def test_to_dict_filters_sensitive_data(self):
        """Share tokens must never appear in error bodies."""
        exc = AppException(
            message="Test error",
            quote_id=7,
            share_token="s3cr3t-link",
            token="abc123",
            api_key="key123",
        )
        details = exc.to_dict()["details"]

        assert details == {"quote_id": 7}

    def test_to_dict_no_context(self):
        assert AppException(message="Simple error").to_dict()["details"] is None


class TestQuoteExceptions:
    """Status codes and context of the quote error taxonomy."""

    @pytest.mark.parametrize(
        "exc_class,status_code",
        [
            (ValidationError, 400),
            (DuplicateQuoteNumberError, 400),
            (ResourceNotFoundError, 404),
            (QuoteNotFoundError, 404),
            (TemplateNotFoundError, 404),
            (LineItemNotFoundError, 404),
            (InvalidStateTransitionError, 400),
            (ComputationFault, 422),
            (ExportError, 500),
        ],
    )
    def test_status_codes(self, exc_class, status_code):
        assert exc_class().status_code == status_code

    def test_not_found_errors_share_a_base(self):
        assert issubclass(QuoteNotFoundError, ResourceNotFoundError)
        assert issubclass(TemplateNotFoundError, ResourceNotFoundError)
        assert issubclass(DuplicateQuoteNumberError, ValidationError)

    def test_invalid_transition_context(self):
        exc = InvalidStateTransitionError(
            "Cannot move quote from draft to accepted",
            quote_id=3,
            current_state="draft",
            requested_state="accepted",
        )
        details = exc.to_dict()["details"]

        assert details["current_state"] == "draft"
        assert details["requested_state"] == "accepted"

    def test_computation_fault_carries_totals(self):
        exc = ComputationFault(totals={"total": "0.00"})
        assert exc.to_dict()["details"]["totals"] == {"total": "0.00"}


class _Body(BaseModel):
    quantity: int = Field(..., gt=0)


@pytest.fixture
def error_app() -> FastAPI:
    from fastapi.exceptions import RequestValidationError

    app = FastAPI()
    app.add_exception_handler(AppException, app_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)

    @app.get("/missing")
    async def missing():
        raise QuoteNotFoundError(resource_type="Quote", resource_id=99)

    @app.post("/body")
    async def body(data: _Body):
        return data

    @app.get("/boom")
    async def boom():
        raise RuntimeError("internal detail")

    return app


class TestExceptionHandlers:
    """Handlers convert errors into the shared envelope."""

    def test_app_exception_envelope(self, error_app):
        response = TestClient(error_app).get("/missing")

        assert response.status_code == 404
        data = response.json()
        assert data["error"] == "QuoteNotFoundError"
        assert data["details"] == {"resource_type": "Quote", "resource_id": 99}

    def test_request_validation_is_400(self, error_app):
        response = TestClient(error_app).post("/body", json={"quantity": 0})

        assert response.status_code == 400
        data = response.json()
        assert data["error"] == "ValidationError"
        assert data["details"]["errors"][0]["field"] == "body.quantity"

    def test_unexpected_error_is_generic_500(self, error_app):
        client = TestClient(error_app, raise_server_exceptions=False)
        response = client.get("/boom")

        assert response.status_code == 500
        assert "internal detail" not in response.text
