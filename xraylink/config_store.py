"""
Copyright (c) 2025 Eric C. Mumford (@heymumford)
This file is part of XRAYLINK, licensed under the MIT License.
See LICENSE file for details.
"""

"""
Persistence of Xray credentials and the cached token.

The blob is a small JSON file in the camelCase shape shared with the rest of the
tooling around it:

    {
        "xrayClientId": "...",
        "xrayClientSecret": "...",
        "jiraBaseUrl": "https://example.atlassian.net",
        "projectKey": "PROJ",
        "tokenData": {"token": "...", "timestamp": 1735689600000, "expiresAt": "..."}
    }
"""

import json
import logging
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from xraylink.errors import ConfigInvalidError
from xraylink.models import CachedToken, Credentials

logger = logging.getLogger(__name__)


class StoredConfig(BaseModel):
    """The persisted credentials and token blob."""

    client_id: str = Field(..., alias="xrayClientId")
    client_secret: str = Field(..., alias="xrayClientSecret")
    jira_base_url: str | None = Field(None, alias="jiraBaseUrl")
    project_key: str | None = Field(None, alias="projectKey")
    token_data: dict[str, Any] | None = Field(None, alias="tokenData")

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    def __repr__(self) -> str:
        return (
            f"StoredConfig(client_id={self.client_id!r}, client_secret='********', "
            f"project_key={self.project_key!r})"
        )

    def credentials(self) -> Credentials:
        return Credentials(client_id=self.client_id, client_secret=self.client_secret)

    def cached_token(self) -> CachedToken | None:
        return CachedToken.from_config_dict(self.token_data)

    def with_token(self, token: CachedToken) -> "StoredConfig":
        """Copy of this config with ``tokenData`` replaced wholesale."""
        return self.model_copy(update={"token_data": token.to_config_dict()})

    def to_file_dict(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class XrayConfigStore:
    """Reads and writes the StoredConfig JSON file."""

    def __init__(self, path: Path | str):
        self.path = Path(path)

    def exists(self) -> bool:
        return self.path.is_file()

    def read_config(self) -> StoredConfig | None:
        """
        Load the stored configuration.

        Returns:
            The configuration, or None when the file does not exist
        """
        if not self.exists():
            logger.debug(f"No Xray configuration at {self.path}")
            return None
        try:
            with open(self.path, encoding="utf-8") as f:
                data = json.load(f)
            return StoredConfig.model_validate(data)
        except json.JSONDecodeError as e:
            raise ConfigInvalidError(self.path, f"not valid JSON ({e})") from e
        except ValidationError as e:
            fields = ", ".join(str(err["loc"][0]) for err in e.errors() if err["loc"])
            reason = f"bad or missing fields: {fields}" if fields else "expected a JSON object"
            raise ConfigInvalidError(self.path, reason) from e

    def write_config(self, config: StoredConfig) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        temp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        with open(temp_path, "w", encoding="utf-8") as f:
            json.dump(config.to_file_dict(), f, indent=2)
        temp_path.replace(self.path)
        logger.debug(f"Saved Xray configuration to {self.path}")

    def save_token(self, token: CachedToken) -> None:
        """Persist a refreshed token next to the credentials it belongs to."""
        config = self.read_config()
        if config is None:
            logger.warning("Refreshed token not persisted: no Xray configuration on disk")
            return
        self.write_config(config.with_token(token))
