"""Tests for domain error rendering."""

import json

import pytest
from django.http import HttpResponse
from django.test import RequestFactory

from server.apps.drive.exceptions import (
    ConflictError,
    CyclicMoveError,
    ForbiddenError,
    InvalidInputError,
    NotFoundError,
)
from server.apps.drive.middleware import DomainErrorMiddleware
from server.apps.marketplace.exceptions import (
    AlreadyPurchasedError,
    ExpiredError,
    PaymentRequiredError,
)


@pytest.fixture
def middleware():
    """Middleware wrapping a view that always succeeds.

    Returns:
        DomainErrorMiddleware instance.
    """
    return DomainErrorMiddleware(lambda request: HttpResponse('ok'))


@pytest.mark.parametrize(('error', 'status'), [
    (NotFoundError(), 404),
    (ForbiddenError(), 403),
    (ConflictError(), 409),
    (CyclicMoveError(), 409),
    (AlreadyPurchasedError(), 409),
    (InvalidInputError(), 400),
    (ExpiredError(), 410),
    (PaymentRequiredError(), 402),
])
def test_status_codes(middleware, error, status):
    """Test each error kind maps to its HTTP status."""
    request = RequestFactory().post('/items/')

    response = middleware.process_exception(request, error)

    assert response.status_code == status
    assert json.loads(response.content) == {'error': error.message}


def test_custom_message(middleware):
    """Test the message given at raise time is returned."""
    request = RequestFactory().get('/items/1/')

    response = middleware.process_exception(
        request,
        NotFoundError('Item not found'),
    )

    assert json.loads(response.content) == {'error': 'Item not found'}


def test_other_exceptions_pass_through(middleware):
    """Test unexpected errors are left to Django."""
    request = RequestFactory().get('/items/')

    assert middleware.process_exception(request, RuntimeError('boom')) is None


def test_regular_requests(middleware):
    """Test requests without errors are untouched."""
    response = middleware(RequestFactory().get('/items/'))

    assert response.content == b'ok'
