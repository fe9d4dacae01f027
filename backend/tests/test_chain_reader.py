from pathlib import Path
import asyncio
import sys

import pytest

sys.path.append(str(Path(__file__).resolve().parents[1]))

from skillmarket.core.config import Settings
from skillmarket.core.errors import OracleReadFailure
from skillmarket.services.chain_reader import ChainReader


class DummyCall:
    def __init__(self, result=None, error: Exception | None = None):
        self.result = result
        self.error = error

    async def call(self):
        if self.error is not None:
            raise self.error
        return self.result


class DummyFunctions:
    def __init__(self, **calls):
        self._calls = calls

    def __getattr__(self, name):
        call = self._calls[name]
        return lambda: call


class DummyContract:
    def __init__(self, **calls):
        self.functions = DummyFunctions(**calls)


def _reader(monkeypatch, contract) -> ChainReader:
    reader = ChainReader(Settings(_env_file=None))
    monkeypatch.setattr(reader, "_contract", lambda chain_id, address, abi: contract)
    return reader


def test_reads_skills_payload(monkeypatch):
    reader = _reader(monkeypatch, DummyContract(getSkillsData=DummyCall("defi|150")))
    assert asyncio.run(reader.read_skills_payload("0xabc")) == "defi|150"


def test_empty_payload_reads_as_empty_string(monkeypatch):
    reader = _reader(monkeypatch, DummyContract(getSkillsData=DummyCall(None)))
    assert asyncio.run(reader.read_skills_payload("0xabc")) == ""


def test_contract_errors_become_read_failures(monkeypatch):
    reader = _reader(monkeypatch, DummyContract(getSkillsData=DummyCall(error=ValueError("execution reverted"))))
    with pytest.raises(OracleReadFailure, match="execution reverted"):
        asyncio.run(reader.read_skills_payload("0xabc"))


def test_reads_price_feed_round_and_decimals(monkeypatch):
    contract = DummyContract(latestRoundData=DummyCall([9, 3_250_000_000, 1, 2, 9]), decimals=DummyCall(8))
    reader = _reader(monkeypatch, contract)

    assert asyncio.run(reader.read_latest_round("0xfeed", 43113)) == (9, 3_250_000_000, 1, 2, 9)
    assert asyncio.run(reader.read_decimals("0xfeed", 43113)) == 8


def test_unknown_chain_has_no_rpc_url():
    reader = ChainReader(Settings(_env_file=None))
    with pytest.raises(OracleReadFailure, match="RPC URL not configured"):
        asyncio.run(reader.read_skills_payload("0x5f6b3e64a1823ab48bf4acb8b3716ac7b77defb1", 999))


def test_invalid_contract_address():
    reader = ChainReader(Settings(_env_file=None))
    with pytest.raises(OracleReadFailure, match="Invalid contract address"):
        asyncio.run(reader.read_skills_payload("not-an-address", 43113))
