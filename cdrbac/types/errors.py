"""
Exceptions raised by the policy compiler, the audit sinks and configuration loading.
"""

from enum import Enum
from typing import Dict, Any, Optional, Sequence


class ErrorCode(str, Enum):
    """Machine readable error categories."""
    INTERNAL_ERROR = "internal_error"
    POLICY_SYNTAX = "policy_syntax"
    POLICY_CONFLICT = "policy_conflict"
    AUDIT_STORAGE = "audit_storage"
    CONFIGURATION_ERROR = "configuration_error"

    def __str__(self) -> str:
        return self.value


INTERNAL_ERROR = ErrorCode.INTERNAL_ERROR
POLICY_SYNTAX = ErrorCode.POLICY_SYNTAX
POLICY_CONFLICT = ErrorCode.POLICY_CONFLICT
AUDIT_STORAGE = ErrorCode.AUDIT_STORAGE
CONFIGURATION_ERROR = ErrorCode.CONFIGURATION_ERROR


class RbacError(Exception):
    """
    Base exception for cdrbac.

    ``details`` carries the structured context (line numbers, rules, subject)
    that callers log or return to clients; ``cause`` is the underlying
    exception, if any.
    """

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = INTERNAL_ERROR,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details: Dict[str, Any] = dict(details) if details else {}
        self.cause = cause
        if cause is not None:
            self.__cause__ = cause

    def to_dict(self) -> Dict[str, Any]:
        """JSON-safe representation for logs and HTTP error bodies."""
        data: Dict[str, Any] = {
            'error': self.error_code.value,
            'type': type(self).__name__,
            'message': self.message,
            'details': self.details,
        }
        if self.cause is not None:
            data['cause'] = f"{type(self.cause).__name__}: {self.cause}"
        return data

    def __str__(self) -> str:
        return f"{self.error_code.value}: {self.message}"


class PolicySyntaxError(RbacError):
    """Raised when a policy line cannot be parsed."""

    def __init__(
        self,
        message: str,
        line_number: int,
        field: Optional[str] = None,
        line: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message, POLICY_SYNTAX, details)
        self.line_number = line_number
        self.field = field
        self.line = line

        self.details['line_number'] = line_number
        if field:
            self.details['field'] = field
        if line is not None:
            self.details['line'] = line

    def __str__(self) -> str:
        where = f"line {self.line_number}"
        if self.field:
            where += f", field '{self.field}'"
        return f"{self.error_code.value}: {self.message} ({where})"


class PolicyConflictError(RbacError):
    """Raised when rules are ambiguous or a bound role is never used."""

    UNBOUND_ROLE = "unbound_role"
    CONFLICTING_EFFECT = "conflicting_effect"

    def __init__(
        self,
        message: str,
        kind: str = CONFLICTING_EFFECT,
        line_numbers: Sequence[int] = (),
        rules: Sequence[str] = (),
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message, POLICY_CONFLICT, details)
        self.kind = kind
        self.line_numbers = tuple(line_numbers)
        self.rules = tuple(rules)

        self.details['kind'] = kind
        if self.line_numbers:
            self.details['line_numbers'] = list(self.line_numbers)
        if self.rules:
            self.details['rules'] = list(self.rules)


class AuditStorageError(RbacError):
    """Raised when the audit sink cannot accept a record."""

    def __init__(
        self,
        message: str,
        subject: Optional[str] = None,
        action: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None
    ):
        super().__init__(message, AUDIT_STORAGE, details, cause)
        self.subject = subject
        self.action = action

        if subject:
            self.details['subject'] = subject
        if action:
            self.details['action'] = action


class ConfigurationError(RbacError):
    """Raised for invalid settings and unreadable policy files."""

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        config_value: Optional[Any] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message, CONFIGURATION_ERROR, details)
        self.config_key = config_key
        self.config_value = config_value

        if config_key is not None:
            self.details['config_key'] = config_key
            if config_value is not None:
                self.details['config_value'] = repr(config_value)
