"""Tests for the error taxonomy."""

import pytest

from grove.errors import (
    CollaboratorError,
    GroveError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)


@pytest.mark.parametrize(
    "error_class,kind",
    [
        (ValidationError, "validation"),
        (NotFoundError, "not_found"),
        (PersistenceError, "persistence"),
        (CollaboratorError, "collaborator"),
    ],
)
def test_structured_error(error_class: type[GroveError], kind: str) -> None:
    """Each error reports a stable kind and its message."""
    error = error_class("something went wrong")

    assert isinstance(error, GroveError)
    assert str(error) == "something went wrong"
    assert error.to_dict() == {"error": kind, "message": "something went wrong"}
