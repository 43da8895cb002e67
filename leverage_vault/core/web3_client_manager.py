"""Reusable Web3 client manager for on-chain price feed reads."""

import json
import logging
from typing import Any, Dict, Optional, Tuple

from web3 import Web3


logger = logging.getLogger(__name__)

# Minimal Chainlink AggregatorV3 surface used when no ABI is configured.
DEFAULT_FEED_ABI = [
    {
        "inputs": [],
        "name": "latestRoundData",
        "outputs": [
            {"name": "roundId", "type": "uint80"},
            {"name": "answer", "type": "int256"},
            {"name": "startedAt", "type": "uint256"},
            {"name": "updatedAt", "type": "uint256"},
            {"name": "answeredInRound", "type": "uint80"},
        ],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [],
        "name": "decimals",
        "outputs": [{"name": "", "type": "uint8"}],
        "stateMutability": "view",
        "type": "function",
    },
]


class Web3ClientManager:
    """Manage a Web3 provider and price feed contract read calls."""

    def __init__(self, rpc_url: str, abi_json: str = "[]", web3: Optional[Web3] = None) -> None:
        """Initialize provider and ABI.

        Args:
            rpc_url: JSON-RPC endpoint of the chain hosting the feeds.
            abi_json: Feed ABI as JSON string; the AggregatorV3 ABI when empty.
            web3: Pre-built client, mainly for tests.
        """
        try:
            parsed_abi = json.loads(abi_json or "[]")
            self._abi = parsed_abi or DEFAULT_FEED_ABI
            self._w3 = web3 if web3 is not None else Web3(Web3.HTTPProvider(rpc_url))
            self._contracts: Dict[str, Any] = {}
            logger.info("Web3ClientManager initialized for rpc=%s", rpc_url)
        except Exception:
            logger.exception("Failed to initialize Web3ClientManager.")
            raise

    def health(self) -> Dict[str, bool]:
        """Return provider connectivity status."""
        try:
            return {"connected": bool(self._w3.is_connected())}
        except Exception:
            logger.exception("Failed to check Web3 provider health.")
            raise

    def read_latest_round(self, feed_address: str) -> Tuple[int, int]:
        """Read ``(answer, updated_at)`` from a price feed.

        Raises:
            ValueError: If the feed reports a non-positive answer.
        """
        try:
            contract = self._feed_contract(feed_address)
            _, answer, _, updated_at, _ = contract.functions.latestRoundData().call()
            if int(answer) <= 0:
                raise ValueError("Feed {0} returned non-positive answer {1}".format(feed_address, answer))
            return int(answer), int(updated_at)
        except Exception:
            logger.exception("Failed to read latestRoundData from feed=%s", feed_address)
            raise

    def read_decimals(self, feed_address: str) -> int:
        """Read the number of decimals a feed answers with."""
        try:
            contract = self._feed_contract(feed_address)
            return int(contract.functions.decimals().call())
        except Exception:
            logger.exception("Failed to read decimals from feed=%s", feed_address)
            raise

    def _feed_contract(self, feed_address: str) -> Any:
        """Return a cached contract instance for ``feed_address``."""
        checksum = self._normalize_address(feed_address)
        if checksum not in self._contracts:
            self._contracts[checksum] = self._w3.eth.contract(address=checksum, abi=self._abi)
        return self._contracts[checksum]

    def _normalize_address(self, address: str) -> str:
        """Validate and normalize an address to checksum format."""
        candidate = str(address or "").strip()
        if not Web3.is_address(candidate):
            raise ValueError("Invalid contract address format.")
        return Web3.to_checksum_address(candidate)
