"""AWS-specific exceptions for error handling."""
from __future__ import annotations

from botocore.exceptions import ClientError


class AwsError(Exception):
    """Base exception for all AWS operations."""
    pass


class IdentityProviderError(AwsError):
    """Cognito or IAM call failed.

    Attributes:
        operation: API operation that failed (e.g. CreateUserPool)
        code: AWS error code when available
        message: Error message from the response
    """

    def __init__(self, operation: str, code: str, message: str):
        self.operation = operation
        self.code = code
        self.message = message
        super().__init__(f"[{code}] {operation}: {message}")


class RecordStoreError(AwsError):
    """DynamoDB call failed."""

    def __init__(self, operation: str, code: str, message: str):
        self.operation = operation
        self.code = code
        self.message = message
        super().__init__(f"[{code}] {operation}: {message}")


def error_code(exc: Exception) -> str:
    """Extract the AWS error code from a botocore exception."""
    if isinstance(exc, ClientError):
        return exc.response.get("Error", {}).get("Code", "Unknown")
    return type(exc).__name__


def error_message(exc: Exception) -> str:
    if isinstance(exc, ClientError):
        return exc.response.get("Error", {}).get("Message", str(exc))
    return str(exc)
