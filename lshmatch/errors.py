"""
Error types for the matching engine.

Every failure the engine reports derives from MatcherError so callers can
catch one type at the orchestration boundary.
"""

from typing import Optional, Any, Dict


class MatcherError(Exception):
    """
    Base exception for all matcher errors.

    Carries a structured ``details`` mapping alongside the message.
    """

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        """
        Initialize matcher error.

        Args:
            message: Error message
            details: Optional detailed error context
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ConfigurationError(MatcherError, ValueError):
    """
    Raised when build or search parameters are invalid.

    Always raised before anything is written to the table store.
    """

    def __init__(self, message: str,
                 parameter: Optional[str] = None,
                 value: Any = None,
                 details: Optional[Dict[str, Any]] = None):
        """
        Initialize configuration error.

        Args:
            message: Error message
            parameter: Name of the offending parameter, if any
            value: Offending value
            details: Additional error context
        """
        super().__init__(message, details)
        self.parameter = parameter
        self.value = value

        self.details.update({
            'parameter': parameter,
            'value': value
        })


class IndexNotFoundError(MatcherError):
    """Raised when no completed index exists under the requested name."""

    def __init__(self, index_name: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(f"No index named '{index_name}' has been built", details)
        self.index_name = index_name
        self.details['index_name'] = index_name


class IncompatibleIndexError(MatcherError):
    """
    Raised when a persisted index cannot be used for searching.

    Covers unreadable or invalid config records, format version mismatches
    and tables that disagree with each other.
    """

    def __init__(self, message: str,
                 index_name: Optional[str] = None,
                 details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details)
        self.index_name = index_name
        self.details['index_name'] = index_name


class StorageError(MatcherError):
    """
    Raised when the table store cannot complete an operation.

    Write-once violations and I/O failures end up here.
    """

    def __init__(self, message: str,
                 table: Optional[str] = None,
                 details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details)
        self.table = table
        self.details['table'] = table
