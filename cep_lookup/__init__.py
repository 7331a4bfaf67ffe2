"""CEP lookup: races Brazilian postal-code providers and keeps the first answer."""

from .config import Config
from .errors import DecodeError, NotFoundError, ProviderError, TransportError
from .models import Address, RaceOutcome
from .providers import BrasilAPIProvider, Provider, ViaCEPProvider, create_providers
from .race import Race, RaceCoordinator

__all__ = [
    "Address",
    "BrasilAPIProvider",
    "Config",
    "DecodeError",
    "NotFoundError",
    "Provider",
    "ProviderError",
    "Race",
    "RaceCoordinator",
    "RaceOutcome",
    "TransportError",
    "ViaCEPProvider",
    "create_providers",
]
