from __future__ import annotations


class MimicError(Exception):
    """Base class for failures that are shown to the user as a single message."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class PreconditionError(MimicError):
    pass


class ConfigurationError(MimicError):
    pass


class ProviderHTTPError(MimicError):
    def __init__(self, provider: str, status_code: int, detail: str) -> None:
        if status_code:
            message = f"{provider} request failed ({status_code}): {detail}"
        else:
            message = f"{provider} request failed: {detail}"
        super().__init__(message)
        self.provider = provider
        self.status_code = status_code
        self.detail = detail


class ContentError(MimicError):
    pass


class AnalysisParseError(ContentError):
    pass
