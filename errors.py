"""Errors raised by the account, session and feedback services.

Each one is turned into a terse 400 response at the request boundary
(see ``main.register_error_handlers``).
"""
from typing import List, Optional

from validation import Violation


class FoodshareError(Exception):
    """Base class for every error a request handler may translate."""

    message = "Bad request"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.message)
        if message:
            self.message = message


class ValidationFailed(FoodshareError):
    """One or more field rules failed. All violations are kept."""

    message = "Validation failed"

    def __init__(self, violations: List[Violation]):
        super().__init__("; ".join(v.message for v in violations))
        self.violations = list(violations)


class NameTaken(FoodshareError):
    message = "Name already exists!"


class InvalidCredentials(FoodshareError):
    message = "Error: Incorrect name / password"


class Unauthenticated(FoodshareError):
    message = "You have to be logged in"


class AmbiguousIdentity(Unauthenticated):
    """Both identity cookies were sent on a role-sensitive request."""

    message = "Log in as either a user or a deliverer, not both"


class TargetNotFound(FoodshareError):
    message = "Not found, couldn't make comment"


class StoreFailure(FoodshareError):
    """The database call failed. Never carries driver detail to the client."""

    message = "Database error"
