from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator

MethodCategory = Literal["public", "private"]

HARD_ERROR_MARKER = "E"


@dataclass(frozen=True)
class RequestEnvelope:
    path: str
    # Ordered (key, value) pairs; the nonce is the last pair for private calls.
    params: tuple[tuple[str, str], ...]
    post_data: str
    signature: str | None = None

    @property
    def signed(self) -> bool:
        return self.signature is not None


class ResponseEnvelope(BaseModel):
    error: list[str] = Field(default_factory=list)
    result: Any = None

    @field_validator("error", mode="before")
    @classmethod
    def _null_error_is_empty(cls, value: Any) -> Any:
        return [] if value is None else value

    def hard_error(self) -> str | None:
        for entry in self.error:
            if entry.startswith(HARD_ERROR_MARKER):
                return entry[len(HARD_ERROR_MARKER) :]
        return None

    def notices(self) -> list[str]:
        return [e for e in self.error if not e.startswith(HARD_ERROR_MARKER)]
