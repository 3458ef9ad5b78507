from __future__ import annotations


class ConfigurationError(RuntimeError):
    """Raised when the service is missing configuration it cannot run without."""


class AssetReplacementError(Exception):
    """A step of the replacement protocol failed.

    Carries the upstream status code and body (or transport reason) where the
    remote side produced one, so callers can log and report it verbatim.
    """

    step = "replacement"

    def __init__(self, message: str, *, status_code: int | None = None, body: str | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body

    def __str__(self) -> str:
        base = super().__str__()
        if self.status_code is not None:
            base = f"{base}: {self.status_code}"
        if self.body:
            base = f"{base} {self.body[:600]}"
        return base


class StageRequestFailed(AssetReplacementError):
    step = "stage_request"


class SourceFetchFailed(AssetReplacementError):
    step = "source_fetch"


class StageUploadFailed(AssetReplacementError):
    step = "stage_upload"


class FinalizeFailed(AssetReplacementError):
    step = "finalize"


class CreateUploadFailed(AssetReplacementError):
    step = "create_upload"
