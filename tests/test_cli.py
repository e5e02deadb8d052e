"""Tests for the lockout command line."""

import json
from unittest.mock import AsyncMock

import pytest

from lockout import cli
from lockout.core.exceptions import StoreUnavailableError
from lockout.services.lockout import LockoutService
from lockout.services.stores import AttemptStore, MemoryAttemptStore


@pytest.fixture
def cli_service(clock, policy) -> LockoutService:
    return LockoutService(MemoryAttemptStore(clock=clock), policy=policy, clock=clock)


@pytest.fixture
def use_service(monkeypatch):
    def install(service):
        monkeypatch.setattr(cli, "build_service", lambda settings: service)

    return install


def test_parser_requires_command():
    with pytest.raises(SystemExit):
        cli.build_parser().parse_args([])


@pytest.mark.asyncio
async def test_status_unknown_identifier(cli_service):
    args = cli.build_parser().parse_args(["status", "email|a@b.com"])

    code, result = await cli.run_command(args, cli_service)

    assert code == 0
    assert result["locked"] is False
    assert result["attempts"] == 0


@pytest.mark.asyncio
async def test_lock_then_unlock_keeping_attempts(cli_service):
    await cli_service.record_failed_attempt("email|a@b.com")
    parser = cli.build_parser()

    code, locked = await cli.run_command(
        parser.parse_args(["lock", "email|a@b.com", "--reason", "fraud_review"]), cli_service
    )
    assert code == 0
    assert locked["locked"] is True
    assert locked["reason"] == "fraud_review"

    code, unlocked = await cli.run_command(
        parser.parse_args(["unlock", "email|a@b.com", "--keep-attempts"]), cli_service
    )
    assert code == 0
    assert unlocked["locked"] is False
    assert unlocked["attempts"] == 1


@pytest.mark.asyncio
async def test_reset_unknown_identifier_fails(cli_service):
    args = cli.build_parser().parse_args(["reset", "ip|10.0.0.1"])

    code, result = await cli.run_command(args, cli_service)

    assert code == 1
    assert result["error"] == "no lockout record"


def test_main_prints_json(cli_service, use_service, capsys):
    use_service(cli_service)

    code = cli.main(["lock", "email|a@b.com"])

    assert code == 0
    output = json.loads(capsys.readouterr().out)
    assert output["identifier"] == "email|a@b.com"
    assert output["locked"] is True


def test_main_reports_store_outage(use_service, policy, capsys):
    store = AsyncMock(spec=AttemptStore)
    store.get.side_effect = StoreUnavailableError("connection refused")
    use_service(LockoutService(store, policy=policy))

    code = cli.main(["status", "email|a@b.com"])

    assert code == 2
    assert "connection refused" in capsys.readouterr().err
