"""Uniform result wrapper returned by every public core operation."""

from __future__ import annotations

from typing import Any, Dict, Optional

from pydantic import BaseModel, model_validator

from market_gateway.utils.time import iso_z


class Envelope(BaseModel):
    """
    {success, data|error, meta?, cached?}

    error is always a plain message string. There is no structured error code,
    so callers that need to tell fault kinds apart must inspect the message.
    """

    success: bool
    data: Any = None
    error: Optional[str] = None
    meta: Optional[Dict[str, Any]] = None
    cached: Optional[bool] = None

    @model_validator(mode="after")
    def check_consistency(self) -> "Envelope":
        if self.success and self.error is not None:
            raise ValueError("successful envelope cannot carry an error")
        if not self.success and not self.error:
            raise ValueError("failed envelope requires an error message")
        return self

    @classmethod
    def ok(
        cls,
        data: Any,
        *,
        cached: bool | None = None,
        meta: Dict[str, Any] | None = None,
    ) -> "Envelope":
        return cls(success=True, data=data, cached=cached, meta=meta)

    @classmethod
    def fail(cls, error: str, *, meta: Dict[str, Any] | None = None) -> "Envelope":
        return cls(success=False, error=error or "Unknown error", meta=meta)

    def with_meta(self, **fields: Any) -> "Envelope":
        meta = {"timestamp": iso_z()}
        meta.update(self.meta or {})
        meta.update(fields)
        return self.model_copy(update={"meta": meta})

    def to_payload(self) -> Dict[str, Any]:
        """JSON-ready dict; unset optional keys are omitted."""
        payload = self.model_dump(mode="json")
        for key in ("error", "meta", "cached"):
            if payload[key] is None:
                del payload[key]
        return payload
