from pydantic import BaseModel, ConfigDict

DEFAULT_NAME = "unknown"


class ResponsePayload(BaseModel):
	model_config = ConfigDict(frozen=True)

	name: str
	address: str
	message: str

	@classmethod
	def greet(cls, name: str, address: str) -> "ResponsePayload":
		return cls(name=name, address=address, message=f"Hello {name} connected from {address}")
