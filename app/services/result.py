from dataclasses import dataclass
from typing import Any, Generic, Optional, TypeVar

T = TypeVar("T")


@dataclass
class Result(Generic[T]):
    ok: bool
    value: Optional[T] = None
    error: Optional[str] = None
    error_code: Optional[str] = None

    @staticmethod
    def success(value: T) -> "Result[T]":
        return Result(ok=True, value=value)

    @staticmethod
    def failure(error: str, code: str = "unknown") -> "Result[T]":
        return Result(ok=False, error=error, error_code=code)

    def unwrap_or(self, default: T) -> T:
        return self.value if self.ok else default

    def as_send_status(self) -> dict[str, Any]:
        """Delivery outcome in the {success, messageId?, error?} shape."""
        status: dict[str, Any] = {"success": self.ok}
        if self.ok and self.value is not None:
            status["messageId"] = self.value
        if not self.ok:
            status["error"] = self.error
        return status
