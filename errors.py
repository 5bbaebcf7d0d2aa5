"""Failures raised while talking to Amber or preparing a request.

Each error carries a message that can be shown to the user as-is.
"""

from typing import Optional


class AmberError(Exception):
    """Base class for every failure surfaced to a view."""

    message = "Something went wrong talking to Amber."

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.message
        super().__init__(self.message)


class MissingCredential(AmberError):
    message = "API key not found. Please login again."


class InvalidCredential(AmberError):
    message = "Invalid API key. Please check your credentials."


class RateLimited(AmberError):
    def __init__(self, wait_seconds: int):
        self.wait_seconds = wait_seconds
        super().__init__(
            f"Rate limit exceeded. Please try again in {wait_seconds} seconds."
        )


class ApiError(AmberError):
    def __init__(self, status_code: Optional[int], reason: str = ""):
        self.status_code = status_code
        if status_code is None:
            text = f"API Error: {reason or 'request failed'}"
        else:
            text = f"API Error: {status_code} {reason}".rstrip()
        super().__init__(text)


class NoSiteId(AmberError):
    message = "No site ID found. Please login again."


class LoginError(AmberError):
    message = "Login failed. Please check your API key."


class NoSitesFound(LoginError):
    message = "No sites found for this account"


class NoActiveSite(LoginError):
    message = "No active sites found for this account"
