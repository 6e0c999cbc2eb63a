from __future__ import annotations


class PowerPlatformAPIError(RuntimeError):
    """Raised when a Power Platform or Dataverse endpoint answers unsuccessfully."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        url: str | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.url = url
