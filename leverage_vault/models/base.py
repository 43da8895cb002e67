"""Shared base models and common type aliases."""

import logging
from typing import Any, Dict

from pydantic import BaseModel, ConfigDict

from .exceptions import ConfigurationError


logger = logging.getLogger(__name__)

Money = int
PercentageBps = int
Address = str


class EngineModel(BaseModel):
    """Base schema for engine parameters and operation results."""

    model_config = ConfigDict(
        str_strip_whitespace=True,
        validate_assignment=True,
        use_enum_values=False,
        frozen=True,
    )

    def to_payload(self) -> Dict[str, Any]:
        """Serialize model into a JSON-ready dictionary.

        Returns:
            Dict[str, Any]: Serialized model payload.

        Raises:
            ConfigurationError: If serialization fails.
        """
        try:
            return self.model_dump(mode="json")
        except Exception as exc:
            logger.exception("Failed to serialize %s", self.__class__.__name__)
            raise ConfigurationError(str(exc))
