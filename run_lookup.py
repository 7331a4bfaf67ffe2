#!/usr/bin/env python3
"""
CLI for the CEP lookup race.

Usage:
    python run_lookup.py                 # looks up the default CEP
    python run_lookup.py 01001000
    python run_lookup.py 01001000 --timeout 2 --json
    python run_lookup.py 01001000 --mode first_signal --providers viacep
"""

import argparse
import json
import logging
import sys

from cep_lookup.config import RACE_MODES, Config, load_env_file, parse_provider_list
from cep_lookup.models import RaceOutcome
from cep_lookup.race import RaceCoordinator

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_TIMEOUT = 124


def setup_logging(verbose: bool = False):
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def format_outcome(outcome: RaceOutcome) -> list:
    """Human-readable lines for an outcome."""
    if outcome.is_success:
        addr = outcome.address
        return [f"Endereço ({outcome.provider}): {addr.street}, {addr.neighborhood}, {addr.city} - {addr.state}"]
    if outcome.is_timeout:
        return ["Timeout: Nenhuma das APIs respondeu em tempo hábil."]
    return [f"Erro ({label}): {err.message}" for label, err in outcome.errors.items()]


def exit_code(outcome: RaceOutcome) -> int:
    if outcome.is_success:
        return EXIT_OK
    if outcome.is_timeout:
        return EXIT_TIMEOUT
    return EXIT_FAILED


def main(argv=None) -> int:
    load_env_file(".env")
    parser = argparse.ArgumentParser(description="Race CEP providers and print the first answer")
    parser.add_argument("cep", nargs="?", help="CEP to look up (default: 01153000)")
    parser.add_argument("--timeout", type=float, help="Race deadline in seconds (default: 1.0)")
    parser.add_argument("--mode", choices=RACE_MODES, help="Race semantics (default: first_success)")
    parser.add_argument("--providers", help="Comma-separated providers, e.g. brasilapi,viacep")
    parser.add_argument("--json", action="store_true", help="Print the outcome as JSON")
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose logging")

    args = parser.parse_args(argv)
    setup_logging(args.verbose)

    try:
        config = Config.from_env(
            timeout=args.timeout,
            race_mode=args.mode,
            providers=parse_provider_list(args.providers) if args.providers else None,
        )
        coordinator = RaceCoordinator.from_config(config)
    except ValueError as e:
        parser.error(str(e))

    outcome = coordinator.lookup(args.cep or config.default_cep)

    if args.json:
        print(json.dumps(outcome.to_dict(), indent=2, ensure_ascii=False))
    else:
        for line in format_outcome(outcome):
            print(line)
    return exit_code(outcome)


if __name__ == "__main__":
    sys.exit(main())
