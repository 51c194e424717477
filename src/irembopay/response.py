from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Optional


def _to_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, str):
        return value
    return str(value)


class APIResponse:
    """The ``{success, message, data}`` wrapper around every IremboPay answer."""

    def __init__(
        self,
        *,
        success: bool,
        message: Optional[str],
        data: Any,
        raw: Mapping[str, Any] | None = None,
    ) -> None:
        self.success = success
        self.message = message
        self.data = data
        self.raw = {str(k): v for k, v in (raw or {}).items()}

    @property
    def ok(self) -> bool:
        return self.success

    @classmethod
    def from_raw(cls, payload: Mapping[str, Any]) -> "APIResponse":
        return cls(
            success=payload.get("success") is True,
            message=_to_str(payload.get("message")),
            data=payload.get("data"),
            raw=payload,
        )

    def to_dict(self, *, include_raw: bool = False) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "success": self.success,
            "message": self.message,
            "data": self.data,
        }
        if include_raw:
            payload["raw"] = dict(self.raw)
        return payload

    def __repr__(self) -> str:
        return f"APIResponse(success={self.success!r}, message={self.message!r})"
