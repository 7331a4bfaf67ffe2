"""Data models for CEP lookups."""

from dataclasses import dataclass, field
from typing import Dict, Optional

from .errors import ProviderError

SUCCESS = "success"
FAILURE = "failure"
TIMEOUT = "timeout"


@dataclass(frozen=True)
class Address:
    postal_code: str = ""
    street: str = ""
    neighborhood: str = ""
    city: str = ""
    state: str = ""

    def to_dict(self) -> dict:
        return {
            "postal_code": self.postal_code,
            "street": self.street,
            "neighborhood": self.neighborhood,
            "city": self.city,
            "state": self.state,
        }


@dataclass(frozen=True)
class RaceOutcome:
    """Terminal value of one race: exactly one of success, failure or timeout.

    ``errors`` maps provider label -> error for every branch that failed
    before the race resolved, whatever the status.
    """

    status: str
    address: Optional[Address] = None
    provider: Optional[str] = None
    error: Optional[ProviderError] = None
    errors: Dict[str, ProviderError] = field(default_factory=dict)
    elapsed_ms: int = 0

    @classmethod
    def success(cls, provider: str, address: Address, errors=None, elapsed_ms: int = 0) -> "RaceOutcome":
        return cls(SUCCESS, address=address, provider=provider,
                   errors=dict(errors or {}), elapsed_ms=elapsed_ms)

    @classmethod
    def failure(cls, provider: str, error: ProviderError, errors=None, elapsed_ms: int = 0) -> "RaceOutcome":
        all_errors = dict(errors or {})
        all_errors.setdefault(provider, error)
        return cls(FAILURE, provider=provider, error=error,
                   errors=all_errors, elapsed_ms=elapsed_ms)

    @classmethod
    def timeout(cls, errors=None, elapsed_ms: int = 0) -> "RaceOutcome":
        return cls(TIMEOUT, errors=dict(errors or {}), elapsed_ms=elapsed_ms)

    @property
    def is_success(self) -> bool:
        return self.status == SUCCESS

    @property
    def is_failure(self) -> bool:
        return self.status == FAILURE

    @property
    def is_timeout(self) -> bool:
        return self.status == TIMEOUT

    def to_dict(self) -> dict:
        """Serialize to dict for JSON output."""
        return {
            "status": self.status,
            "provider": self.provider,
            "address": self.address.to_dict() if self.address else None,
            "error": self.error.message if self.error else None,
            "errors": {label: err.message for label, err in self.errors.items()},
            "elapsed_ms": self.elapsed_ms,
        }
