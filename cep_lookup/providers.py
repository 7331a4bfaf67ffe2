"""CEP providers: one adapter per external lookup service.

Each adapter knows its URL template and how its JSON maps onto Address;
everything else (request, streaming read, cancellation, error mapping) is
shared in JSONProvider.
"""

import json
import logging
import time
from abc import ABC, abstractmethod
from typing import Dict, List, Optional
from urllib.parse import quote

import requests

from .cancel import CancelToken
from .config import Config
from .errors import DecodeError, NotFoundError, TransportError
from .models import Address
from .transport import cancellable_session

logger = logging.getLogger(__name__)


class Provider(ABC):
    label: str = ""

    @abstractmethod
    def lookup(self, cep: str, token: CancelToken) -> Address:
        """Fetch the address for ``cep``. Raises ProviderError on failure."""
        ...


class JSONProvider(Provider):
    """A provider answering GET <url_template> with a flat JSON object."""

    url_template: str = ""
    # Address field -> key in the provider's JSON
    field_map: Dict[str, str] = {}

    CHUNK_SIZE = 8192

    def __init__(self, url_template: Optional[str] = None, user_agent: str = "cep-lookup/1.0",
                 cancel_grace: float = 0.25, default_timeout: float = 10.0):
        if url_template:
            self.url_template = url_template
        if "{cep}" not in self.url_template:
            raise ValueError(f"{self.label}: URL template must contain {{cep}}: {self.url_template!r}")
        self.user_agent = user_agent
        self.cancel_grace = cancel_grace
        self.default_timeout = default_timeout

    def build_url(self, cep: str) -> str:
        return self.url_template.format(cep=quote(cep, safe=""))

    def lookup(self, cep: str, token: Optional[CancelToken] = None) -> Address:
        token = token or CancelToken()
        url = self.build_url(cep)

        session = cancellable_session(token)
        try:
            token.raise_if_cancelled(self.label)
            t0 = time.time()
            body, status_code = self._get(session, url, token)
            token.raise_if_cancelled(self.label)
            elapsed_ms = int((time.time() - t0) * 1000)
            logger.debug(f"{self.label}: GET {url} -> {status_code} ({elapsed_ms}ms, {len(body)} bytes)")

            if status_code == 404:
                raise NotFoundError(self.label, f"CEP {cep} not found")
            if not 200 <= status_code < 300:
                raise TransportError(self.label, f"HTTP {status_code} from {url}", status_code=status_code)

            try:
                data = json.loads(body)
            except ValueError as e:
                raise DecodeError(self.label, f"invalid JSON: {e}") from e
            if self.is_not_found(data):
                raise NotFoundError(self.label, f"CEP {cep} not found")
            return self.parse(data)
        finally:
            token.unregister(session)
            session.close()

    def _get(self, session: requests.Session, url: str, token: CancelToken):
        """GET ``url`` and read the whole body, checking the token between chunks."""
        try:
            resp = session.get(
                url,
                headers={"Accept": "application/json", "User-Agent": self.user_agent},
                timeout=self._request_timeout(token),
                stream=True,
            )
        except requests.RequestException as e:
            token.raise_if_cancelled(self.label)
            raise TransportError(self.label, f"request failed: {e}") from e

        token.register(resp)
        try:
            with resp:
                chunks = []
                for chunk in resp.iter_content(chunk_size=self.CHUNK_SIZE):
                    token.raise_if_cancelled(self.label)
                    chunks.append(chunk)
                return b"".join(chunks), resp.status_code
        except (requests.RequestException, OSError, ValueError, AttributeError) as e:
            # urllib3 raises assorted errors when the response is closed under it
            token.raise_if_cancelled(self.label)
            raise TransportError(self.label, f"error reading response: {e}") from e
        finally:
            token.unregister(resp)

    def _request_timeout(self, token: CancelToken) -> float:
        remaining = token.remaining()
        if remaining is None:
            return self.default_timeout
        return remaining + self.cancel_grace

    def is_not_found(self, data) -> bool:
        return False

    def parse(self, data) -> Address:
        """Map a decoded JSON object onto Address. Missing or null fields become ""."""
        if not isinstance(data, dict):
            raise DecodeError(self.label, f"expected a JSON object, got {type(data).__name__}")
        values = {}
        for attr, key in self.field_map.items():
            value = data.get(key)
            if value is None:
                value = ""
            elif not isinstance(value, str):
                raise DecodeError(self.label, f"field {key!r} should be a string, got {type(value).__name__}")
            values[attr] = value
        return Address(**values)


class BrasilAPIProvider(JSONProvider):
    """BrasilAPI CEP v1. Answers 404 with an error document for unknown CEPs."""

    label = "Brasil API"
    url_template = "https://brasilapi.com.br/api/cep/v1/{cep}"
    field_map = {
        "postal_code": "cep",
        "street": "street",
        "neighborhood": "neighborhood",
        "city": "city",
        "state": "state",
    }


class ViaCEPProvider(JSONProvider):
    """ViaCEP. Answers 200 with {"erro": true} for unknown CEPs."""

    label = "ViaCEP"
    url_template = "https://viacep.com.br/ws/{cep}/json/"
    field_map = {
        "postal_code": "cep",
        "street": "logradouro",
        "neighborhood": "bairro",
        "city": "localidade",
        "state": "uf",
    }

    def is_not_found(self, data) -> bool:
        # Older deployments send "erro": "true" as a string
        return isinstance(data, dict) and data.get("erro") in (True, "true")


PROVIDERS = {
    "brasilapi": (BrasilAPIProvider, "brasilapi_url"),
    "viacep": (ViaCEPProvider, "viacep_url"),
}


def create_providers(config: Optional[Config] = None) -> List[Provider]:
    """Factory building the configured providers, in configured order.

    Args:
        config: provider names come from ``config.providers``; URL templates
            from ``config.brasilapi_url`` / ``config.viacep_url``
    """
    config = config or Config()
    providers = []
    for name in config.providers:
        if name not in PROVIDERS:
            raise ValueError(f"Unknown provider: {name} (expected one of {sorted(PROVIDERS)})")
        cls, url_attr = PROVIDERS[name]
        providers.append(cls(
            url_template=getattr(config, url_attr),
            user_agent=config.user_agent,
            cancel_grace=config.cancel_grace,
        ))
    return providers
