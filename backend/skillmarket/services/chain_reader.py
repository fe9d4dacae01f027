from __future__ import annotations

import logging
from typing import Any

from web3 import AsyncHTTPProvider, AsyncWeb3

from skillmarket.core.config import Settings, settings as default_settings
from skillmarket.core.errors import OracleReadFailure

logger = logging.getLogger(__name__)

SKILL_PRICE_ABI: list[dict[str, Any]] = [
    {
        "inputs": [],
        "name": "getSkillsData",
        "outputs": [{"internalType": "string", "name": "", "type": "string"}],
        "stateMutability": "view",
        "type": "function",
    },
]

PRICE_FEED_ABI: list[dict[str, Any]] = [
    {
        "inputs": [],
        "name": "latestRoundData",
        "outputs": [
            {"internalType": "uint80", "name": "roundId", "type": "uint80"},
            {"internalType": "int256", "name": "answer", "type": "int256"},
            {"internalType": "uint256", "name": "startedAt", "type": "uint256"},
            {"internalType": "uint256", "name": "updatedAt", "type": "uint256"},
            {"internalType": "uint80", "name": "answeredInRound", "type": "uint80"},
        ],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [],
        "name": "decimals",
        "outputs": [{"internalType": "uint8", "name": "", "type": "uint8"}],
        "stateMutability": "view",
        "type": "function",
    },
]


class ChainReader:
    """Read-only contract calls, one JSON-RPC provider per chain."""

    def __init__(self, config: Settings | None = None):
        self.config = config or default_settings
        self._clients: dict[int, AsyncWeb3] = {}

    def _client(self, chain_id: int) -> AsyncWeb3:
        client = self._clients.get(chain_id)
        if client is not None:
            return client
        rpc_url = self.config.rpc_url_for(chain_id)
        if not rpc_url:
            raise OracleReadFailure(f"RPC URL not configured for chain {chain_id}")
        client = AsyncWeb3(
            AsyncHTTPProvider(rpc_url, request_kwargs={"timeout": self.config.rpc_timeout_seconds})
        )
        self._clients[chain_id] = client
        return client

    def _contract(self, chain_id: int, address: str, abi: list[dict[str, Any]]):
        client = self._client(chain_id)
        try:
            checksum = AsyncWeb3.to_checksum_address(address)
        except ValueError as exc:
            raise OracleReadFailure(f"Invalid contract address: {address}") from exc
        return client.eth.contract(address=checksum, abi=abi)

    async def read_skills_payload(self, contract_address: str, chain_id: int | None = None) -> str:
        chain = chain_id or self.config.default_chain_id
        contract = self._contract(chain, contract_address, SKILL_PRICE_ABI)
        try:
            raw = await contract.functions.getSkillsData().call()
        except Exception as exc:
            raise OracleReadFailure(f"getSkillsData() failed on chain {chain}: {exc}") from exc
        logger.debug("Raw oracle payload length %s from %s", len(raw or ""), contract_address)
        return str(raw or "")

    async def read_latest_round(self, feed_address: str, chain_id: int) -> tuple[int, int, int, int, int]:
        contract = self._contract(chain_id, feed_address, PRICE_FEED_ABI)
        try:
            round_id, answer, started_at, updated_at, answered_in_round = (
                await contract.functions.latestRoundData().call()
            )
        except Exception as exc:
            raise OracleReadFailure(f"latestRoundData() failed on chain {chain_id}: {exc}") from exc
        return int(round_id), int(answer), int(started_at), int(updated_at), int(answered_in_round)

    async def read_decimals(self, feed_address: str, chain_id: int) -> int:
        contract = self._contract(chain_id, feed_address, PRICE_FEED_ABI)
        try:
            return int(await contract.functions.decimals().call())
        except Exception as exc:
            raise OracleReadFailure(f"decimals() failed on chain {chain_id}: {exc}") from exc
