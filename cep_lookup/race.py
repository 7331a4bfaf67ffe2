"""Race coordinator: runs every provider concurrently and keeps the first decisive answer."""

import logging
import threading
import time
from concurrent.futures import FIRST_COMPLETED, ThreadPoolExecutor, wait
from typing import Dict, List, Optional, Sequence

from .cancel import CancelToken
from .config import FIRST_SIGNAL, FIRST_SUCCESS, RACE_MODES, Config
from .errors import LookupCancelled, ProviderError
from .models import Address, RaceOutcome
from .providers import Provider, create_providers

logger = logging.getLogger(__name__)

RUNNING = "running"
COMPLETED = "completed"
CANCELLED = "cancelled"


class Race:
    """
    One race of ``providers`` for one CEP. Single-shot: run() may be called once.

    Each provider runs in its own worker thread under a shared CancelToken
    that carries the deadline. The first success wins; in "first_signal"
    mode a failure ends the race too. Otherwise failures are collected and
    reported together once every branch has failed. When the race resolves
    the token is cancelled, which tears down in-flight requests, and
    unfinished branches are marked cancelled. run() never waits for them.
    """

    def __init__(self, providers: Sequence[Provider], timeout: float, mode: str = FIRST_SUCCESS):
        if not providers:
            raise ValueError("A race needs at least one provider")
        labels = [p.label for p in providers]
        if len(set(labels)) != len(labels):
            raise ValueError(f"Provider labels must be unique, got {labels}")
        if timeout <= 0:
            raise ValueError(f"timeout must be positive, got {timeout}")
        if mode not in RACE_MODES:
            raise ValueError(f"Unknown race mode: {mode}")

        self.providers = list(providers)
        self.timeout = timeout
        self.mode = mode
        self.branch_states: Dict[str, str] = {}
        self._state_lock = threading.Lock()
        self._started = False
        self.token: Optional[CancelToken] = None

    def run(self, cep: str) -> RaceOutcome:
        if self._started:
            raise RuntimeError("Race already run; build a new Race for another lookup")
        self._started = True

        t0 = time.time()
        self.token = token = CancelToken(self.timeout)
        order = {p.label: i for i, p in enumerate(self.providers)}
        errors: Dict[str, ProviderError] = {}
        outcome = None

        executor = ThreadPoolExecutor(max_workers=len(self.providers), thread_name_prefix="cep-race")
        try:
            futures = {}
            for provider in self.providers:
                self._set_state(provider.label, RUNNING)
                futures[executor.submit(self._run_branch, provider, cep, token)] = provider
            pending = set(futures)

            while pending and outcome is None:
                remaining = token.remaining()
                if remaining <= 0:
                    break
                done, pending = wait(pending, timeout=remaining, return_when=FIRST_COMPLETED)

                successes, failures = [], []
                for future in sorted(done, key=lambda f: order[futures[f].label]):
                    label = futures[future].label
                    try:
                        successes.append((label, future.result()))
                    except ProviderError as e:
                        logger.warning(f"{label} failed for CEP {cep}: {e.message}")
                        errors[label] = e
                        failures.append((label, e))

                elapsed_ms = int((time.time() - t0) * 1000)
                if successes:
                    label, address = successes[0]
                    outcome = RaceOutcome.success(label, address, errors, elapsed_ms)
                elif failures and self.mode == FIRST_SIGNAL:
                    label, error = failures[0]
                    outcome = RaceOutcome.failure(label, error, errors, elapsed_ms)

            elapsed_ms = int((time.time() - t0) * 1000)
            if outcome is None and pending:
                outcome = RaceOutcome.timeout(errors, elapsed_ms)
            elif outcome is None:
                first = min(errors, key=lambda label: order[label])
                outcome = RaceOutcome.failure(first, errors[first], errors, elapsed_ms)
        finally:
            token.cancel()
            for provider in self.providers:
                self._cancel_state(provider.label)
            executor.shutdown(wait=False, cancel_futures=True)

        if outcome.is_success:
            logger.info(f"CEP {cep}: {outcome.provider} won in {outcome.elapsed_ms}ms")
        elif outcome.is_timeout:
            logger.warning(f"CEP {cep}: no provider answered within {self.timeout}s")
        else:
            logger.warning(f"CEP {cep}: failed ({', '.join(outcome.errors)}) in {outcome.elapsed_ms}ms")
        return outcome

    def _run_branch(self, provider: Provider, cep: str, token: CancelToken) -> Address:
        try:
            address = provider.lookup(cep, token)
        except LookupCancelled:
            self._cancel_state(provider.label)
            raise
        except ProviderError:
            self._complete_state(provider.label)
            raise
        except Exception as e:
            logger.exception(f"{provider.label}: unexpected error for CEP {cep}")
            self._complete_state(provider.label)
            raise ProviderError(provider.label, f"unexpected error: {e}") from e
        self._complete_state(provider.label)
        return address

    def _set_state(self, label: str, state: str):
        with self._state_lock:
            self.branch_states[label] = state

    def _complete_state(self, label: str):
        with self._state_lock:
            if self.branch_states.get(label) == RUNNING:
                self.branch_states[label] = COMPLETED

    def _cancel_state(self, label: str):
        with self._state_lock:
            if self.branch_states.get(label) == RUNNING:
                self.branch_states[label] = CANCELLED


class RaceCoordinator:
    """Reusable front door: builds a fresh Race (and deadline) per lookup."""

    def __init__(self, providers: Optional[List[Provider]] = None, timeout: float = 1.0,
                 mode: str = FIRST_SUCCESS):
        self.providers = list(providers) if providers is not None else create_providers()
        self.timeout = timeout
        self.mode = mode
        # Validate eagerly rather than on the first lookup
        Race(self.providers, timeout, mode)

    @classmethod
    def from_config(cls, config: Optional[Config] = None) -> "RaceCoordinator":
        config = config or Config()
        return cls(create_providers(config), timeout=config.timeout, mode=config.race_mode)

    def new_race(self, timeout: Optional[float] = None) -> Race:
        return Race(self.providers, self.timeout if timeout is None else timeout, self.mode)

    def lookup(self, cep: str, timeout: Optional[float] = None) -> RaceOutcome:
        """Race every provider for ``cep``; returns exactly one RaceOutcome."""
        return self.new_race(timeout).run(cep)
