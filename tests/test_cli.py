"""Tests for the command-line client."""

import pytest

import cli
from app.client import TransactionHistory, TransactionRecord
from app.config import settings

USER = "0x1111111111111111111111111111111111111111"


@pytest.fixture(autouse=True)
def state_dir(tmp_path, monkeypatch):
    monkeypatch.setattr(settings, "client_state_dir", tmp_path)
    return tmp_path


def test_session_token_file(state_dir):
    assert cli.load_session_token() is None

    cli.save_session_token("tok")
    assert cli.load_session_token() == "tok"
    assert (state_dir / "session").stat().st_mode & 0o777 == 0o600

    cli.save_session_token(None)
    assert cli.load_session_token() is None


@pytest.mark.asyncio
async def test_history_command(state_dir, capsys):
    TransactionHistory(state_dir).add(
        USER, TransactionRecord(type="transfer", amount="1500000", token="USDC", recipient=USER)
    )

    await cli.main(["history", USER])

    out = capsys.readouterr().out
    assert "transfer" in out
    assert "1.500000 USDC" in out


@pytest.mark.asyncio
async def test_empty_history(capsys):
    await cli.main(["history", USER])
    assert "No transactions yet." in capsys.readouterr().out


@pytest.mark.asyncio
async def test_history_limit_must_be_positive():
    with pytest.raises(ValueError):
        await cli.main(["history", USER, "--limit", "0"])


@pytest.mark.asyncio
async def test_login_requires_key(capsys, monkeypatch):
    monkeypatch.delenv("SPENDCHAT_PRIVATE_KEY", raising=False)
    await cli.cli_login(None, None)
    assert "Provide --private-key" in capsys.readouterr().out
