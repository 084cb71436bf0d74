"""Tests for configuration validation."""
import pytest

from tokengate import config


@pytest.fixture
def valid(monkeypatch):
    monkeypatch.setattr(config, "DISCORD_TOKEN", "bot-token")
    monkeypatch.setattr(config, "GUILD_ID", "G1")
    monkeypatch.setattr(config, "VERIFIED_ROLE_ID", "R1")
    monkeypatch.setattr(config, "MONAD_RPC_URL", "https://rpc.example")
    monkeypatch.setattr(config, "NFT_CONTRACT_ADDRESS", "0x5FbDB2315678afecb367f032d93F642f64180aa3")
    monkeypatch.setattr(config, "TOKEN_STANDARD", "erc721")
    monkeypatch.setattr(config, "TOKEN_IDS", ())
    monkeypatch.setattr(config, "CHALLENGE_TTL_SECONDS", 600)
    monkeypatch.setattr(config, "REVERIFY_INTERVAL_SECONDS", 3600)
    monkeypatch.setattr(config, "CHALLENGE_CLEANUP_INTERVAL_SECONDS", 60)
    return monkeypatch


def test_valid_config_has_no_issues(valid):
    assert config.validate_config() == []


@pytest.mark.parametrize(
    "name",
    ["DISCORD_TOKEN", "GUILD_ID", "VERIFIED_ROLE_ID", "MONAD_RPC_URL", "NFT_CONTRACT_ADDRESS"],
)
def test_missing_required_value(valid, name):
    valid.setattr(config, name, "")
    assert config.validate_config() == [f"{name} is required"]


def test_unknown_token_standard(valid):
    valid.setattr(config, "TOKEN_STANDARD", "erc20")
    assert config.validate_config() == ["Invalid TOKEN_STANDARD: erc20"]


def test_erc1155_needs_token_ids(valid):
    valid.setattr(config, "TOKEN_STANDARD", "erc1155")
    assert config.validate_config() == ["TOKEN_IDS required when TOKEN_STANDARD is erc1155"]

    valid.setattr(config, "TOKEN_IDS", (1, 2))
    assert config.validate_config() == []


def test_non_positive_durations(valid):
    valid.setattr(config, "CHALLENGE_TTL_SECONDS", 0)
    valid.setattr(config, "REVERIFY_INTERVAL_SECONDS", -1)
    assert config.validate_config() == [
        "CHALLENGE_TTL_SECONDS must be positive",
        "REVERIFY_INTERVAL_SECONDS must be positive",
    ]


def test_parse_token_ids(monkeypatch):
    monkeypatch.setenv("TOKEN_IDS", " 1, 2,,7 ")
    assert config._parse_token_ids() == (1, 2, 7)

    monkeypatch.delenv("TOKEN_IDS")
    assert config._parse_token_ids() == ()
