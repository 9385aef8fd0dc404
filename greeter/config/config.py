import asyncio
import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ..errors import ConfigError

DEFAULT_CONFIG_PATH = "application.yaml"


class DatasourceConfig(BaseModel):
	model_config = ConfigDict(frozen=True, populate_by_name=True)

	host: str
	port: int
	database: str
	user: str
	password: str
	max_size: int = Field(alias="maxSize", ge=1)

	def masked(self) -> dict[str, Any]:
		data = self.model_dump(by_alias=True)
		data["password"] = "****"
		return data


class AppConfig(BaseModel):
	model_config = ConfigDict(frozen=True, extra="allow")

	datasource: DatasourceConfig


def read_config_path(default: str = DEFAULT_CONFIG_PATH) -> str:
	return os.environ.get("GREETER_CONFIG") or default


def parse_config(text: str, source: str = "<string>") -> AppConfig:
	try:
		document = yaml.safe_load(text)
	except yaml.YAMLError as e:
		raise ConfigError(f"Invalid YAML in {source}: {e}", source) from e
	if not isinstance(document, dict):
		raise ConfigError(f"Configuration in {source} must be a mapping", source)
	if "datasource" not in document:
		raise ConfigError(f"Missing 'datasource' section in {source}", source)
	try:
		return AppConfig.model_validate(document)
	except ValidationError as e:
		raise ConfigError(f"Invalid configuration in {source}: {e}", source) from e


class ConfigSource:
	def __init__(self, path: str | Path = DEFAULT_CONFIG_PATH) -> None:
		self.path = Path(path)

	def _read(self) -> str:
		try:
			return self.path.read_text(encoding="utf-8")
		except OSError as e:
			raise ConfigError(f"Cannot read {self.path}: {e.strerror or e}", str(self.path)) from e
		except UnicodeDecodeError as e:
			raise ConfigError(f"Cannot decode {self.path} as UTF-8: {e}", str(self.path)) from e

	async def load(self) -> AppConfig:
		text = await asyncio.to_thread(self._read)
		return parse_config(text, str(self.path))
