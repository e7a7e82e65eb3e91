import math
from typing import Optional, List, Dict, Any

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from generate_proxy.shared.config import Settings
from generate_proxy.shared.errors import ClientInputError


def _finite_number(value: Any) -> Optional[float]:
    # bool is an int subclass but never a valid generation parameter
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    try:
        finite = math.isfinite(value)
    except OverflowError:
        # integers beyond float range
        return None
    return value if finite else None


class ChatMessage(BaseModel):
    model_config = ConfigDict(extra="allow")

    role: str
    content: Any = None


class GenerateRequest(BaseModel):
    """
    Body accepted by the generate endpoint.

    Generation parameters of the wrong type are treated as not provided rather
    than rejected, so callers always get the configured defaults instead.
    """
    model_config = ConfigDict(extra="ignore")

    prompt: Optional[str] = None
    messages: Optional[List[ChatMessage]] = None
    model: Optional[str] = None
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None
    top_p: Optional[float] = None
    frequency_penalty: Optional[float] = None
    presence_penalty: Optional[float] = None

    @field_validator("prompt", "model", mode="before")
    @classmethod
    def _blank_text_is_unset(cls, value: Any) -> Optional[str]:
        if isinstance(value, str) and value.strip():
            return value
        return None

    @field_validator("temperature", "top_p", "frequency_penalty", "presence_penalty", mode="before")
    @classmethod
    def _numbers_only(cls, value: Any) -> Optional[float]:
        return _finite_number(value)

    @field_validator("max_tokens", mode="before")
    @classmethod
    def _integers_only(cls, value: Any) -> Optional[int]:
        number = _finite_number(value)
        if number is None or int(number) != number:
            return None
        return int(number)

    @property
    def has_input(self) -> bool:
        return bool(self.prompt) or bool(self.messages)

    @classmethod
    def from_payload(cls, data: Dict[str, Any]) -> "GenerateRequest":
        """Validates a decoded JSON object, raising ClientInputError on bad input."""
        try:
            request = cls.model_validate(data)
        except ValidationError as e:
            raise ClientInputError(
                "Invalid messages in request body",
                details=[
                    {"loc": [str(part) for part in err["loc"]], "msg": err["msg"]}
                    for err in e.errors()
                ],
            ) from e

        if not request.has_input:
            raise ClientInputError(
                "Missing prompt or messages in request body",
                received=list(data.keys()),
            )
        return request


class UpstreamPayload(BaseModel):
    """The chat-completion request sent to the upstream API."""
    model: str
    messages: List[Dict[str, Any]]
    temperature: float
    max_tokens: int
    top_p: float
    frequency_penalty: float
    presence_penalty: float

    @classmethod
    def build(cls, request: GenerateRequest, settings: Settings) -> "UpstreamPayload":
        defaults = settings.generation

        def pick(value, default):
            return default if value is None else value

        if request.messages:
            messages = [message.model_dump(exclude_unset=True) for message in request.messages]
        else:
            messages = [{"role": "user", "content": request.prompt}]

        return cls(
            model=request.model or settings.openai.default_model,
            messages=messages,
            temperature=pick(request.temperature, defaults.temperature),
            max_tokens=pick(request.max_tokens, defaults.max_tokens),
            top_p=pick(request.top_p, defaults.top_p),
            frequency_penalty=pick(request.frequency_penalty, defaults.frequency_penalty),
            presence_penalty=pick(request.presence_penalty, defaults.presence_penalty),
        )
