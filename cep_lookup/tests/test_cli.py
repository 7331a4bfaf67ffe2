"""Tests for run_lookup: outcome formatting, exit codes, and argument handling."""

import json

import pytest

import run_lookup
from cep_lookup.errors import DecodeError, TransportError
from cep_lookup.models import Address, RaceOutcome
from cep_lookup.race import RaceCoordinator

ADDRESS = Address(postal_code="01001000", street="Praça da Sé", neighborhood="Sé",
                  city="São Paulo", state="SP")


def test_format_success():
    outcome = RaceOutcome.success("ViaCEP", ADDRESS)
    assert run_lookup.format_outcome(outcome) == ["Endereço (ViaCEP): Praça da Sé, Sé, São Paulo - SP"]
    assert run_lookup.exit_code(outcome) == run_lookup.EXIT_OK


def test_format_failure_lists_every_provider():
    errors = {
        "Brasil API": TransportError("Brasil API", "request failed"),
        "ViaCEP": DecodeError("ViaCEP", "invalid JSON"),
    }
    outcome = RaceOutcome.failure("Brasil API", errors["Brasil API"], errors)
    assert run_lookup.format_outcome(outcome) == [
        "Erro (Brasil API): request failed",
        "Erro (ViaCEP): invalid JSON",
    ]
    assert run_lookup.exit_code(outcome) == run_lookup.EXIT_FAILED


def test_format_timeout():
    outcome = RaceOutcome.timeout()
    assert run_lookup.format_outcome(outcome) == ["Timeout: Nenhuma das APIs respondeu em tempo hábil."]
    assert run_lookup.exit_code(outcome) == run_lookup.EXIT_TIMEOUT


@pytest.fixture
def stub_coordinator(monkeypatch, stub_provider):
    """Route the CLI's coordinator to stub providers, keeping its timeout and mode."""
    built = {}

    def from_config(config):
        coordinator = RaceCoordinator(
            [stub_provider("fast", delay=0.01), stub_provider("slow", delay=0.5)],
            timeout=config.timeout,
            mode=config.race_mode,
        )
        built["config"] = config
        built["coordinator"] = coordinator
        return coordinator

    monkeypatch.setattr(run_lookup.RaceCoordinator, "from_config", staticmethod(from_config))
    for var in ("CEP_LOOKUP_TIMEOUT", "CEP_LOOKUP_MODE", "CEP_LOOKUP_PROVIDERS"):
        monkeypatch.delenv(var, raising=False)
    return built


def test_main_prints_winner(stub_coordinator, capsys):
    assert run_lookup.main(["01001000"]) == 0
    out = capsys.readouterr().out
    assert out.startswith("Endereço (fast): Rua fast, Sé, São Paulo - SP")


def test_main_json(stub_coordinator, capsys):
    assert run_lookup.main(["01001000", "--json"]) == 0
    data = json.loads(capsys.readouterr().out)
    assert data["status"] == "success"
    assert data["provider"] == "fast"
    assert data["address"]["city"] == "São Paulo"


def test_main_timeout_exit_code(stub_coordinator, capsys):
    assert run_lookup.main(["01001000", "--timeout", "0.001"]) == run_lookup.EXIT_TIMEOUT
    assert "Timeout" in capsys.readouterr().out


def test_main_passes_options(stub_coordinator):
    run_lookup.main(["--mode", "first_signal", "--providers", "viacep", "--timeout", "2"])
    config = stub_coordinator["config"]
    assert config.race_mode == "first_signal"
    assert config.providers == ["viacep"]
    assert config.timeout == 2.0


def test_main_rejects_bad_config(monkeypatch):
    monkeypatch.delenv("CEP_LOOKUP_PROVIDERS", raising=False)
    with pytest.raises(SystemExit) as exc:
        run_lookup.main(["--providers", "correios"])
    assert exc.value.code == 2
