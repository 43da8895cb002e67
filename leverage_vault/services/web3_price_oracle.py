"""Price oracle backed by on-chain AggregatorV3 feeds."""

import logging
from typing import Dict, Tuple

from ..common.protocol_constants import PRICE_DECIMALS
from ..core.web3_client_manager import Web3ClientManager
from ..models.collaborators import PriceOracle
from ..models.exceptions import ConfigurationError


logger = logging.getLogger(__name__)


class Web3PriceOracle(PriceOracle):
    """Reads ``latestRoundData`` and rescales answers to ``PRICE_DECIMALS``."""

    def __init__(self, client: Web3ClientManager, feeds: Dict[str, str]) -> None:
        if not feeds:
            raise ConfigurationError("At least one price feed must be configured")
        self._client = client
        self._feeds = {asset.upper(): address for asset, address in feeds.items()}
        self._decimals: Dict[str, int] = {}

    def get_price(self, asset: str) -> Tuple[int, int]:
        key = asset.upper()
        feed = self._feeds.get(key)
        if feed is None:
            raise ConfigurationError("No price feed configured for asset", asset=key)
        answer, updated_at = self._client.read_latest_round(feed)
        return self._rescale(key, feed, answer), updated_at

    def _rescale(self, asset: str, feed: str, answer: int) -> int:
        if asset not in self._decimals:
            self._decimals[asset] = self._client.read_decimals(feed)
            logger.info("Feed %s for %s answers with %s decimals", feed, asset, self._decimals[asset])
        feed_decimals = self._decimals[asset]
        if feed_decimals == PRICE_DECIMALS:
            return answer
        if feed_decimals > PRICE_DECIMALS:
            return answer // 10 ** (feed_decimals - PRICE_DECIMALS)
        return answer * 10 ** (PRICE_DECIMALS - feed_decimals)
