import json
from dataclasses import dataclass
from datetime import date, datetime, time
from typing import Any

from pydantic import BaseModel


@dataclass(frozen=True)
class SerializationConfig:
    write_dates_as_timestamps: bool = False
    ensure_ascii: bool = False


class JsonSerializer:
    """Renders response objects to JSON bytes using its own settings."""

    media_type = "application/json"

    def __init__(self, config: SerializationConfig | None = None) -> None:
        self.config = config or SerializationConfig()

    def _default(self, value: Any) -> Any:
        if isinstance(value, datetime):
            return value.timestamp() if self.config.write_dates_as_timestamps else value.isoformat()
        if isinstance(value, (date, time)):
            return value.isoformat()
        raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")

    def dumps(self, obj: Any) -> bytes:
        if isinstance(obj, BaseModel):
            obj = obj.model_dump(mode="python")
        text = json.dumps(obj, default=self._default, ensure_ascii=self.config.ensure_ascii, separators=(",", ":"))
        return text.encode("utf-8")
