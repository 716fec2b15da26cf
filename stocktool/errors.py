class QuoteServiceError(Exception):
    """Base error for the quote gateway."""


class MissingCredentialError(QuoteServiceError):
    def __init__(self, provider: str, setting: str) -> None:
        self.provider = provider
        self.setting = setting
        super().__init__(f"{provider} API key is not configured.")


class UpstreamError(QuoteServiceError):
    """Per-symbol upstream failure. The message is shown to API consumers."""


class UpstreamRateLimitError(UpstreamError):
    pass


class UpstreamNoDataError(UpstreamError):
    pass


class UpstreamPayloadError(UpstreamError):
    pass


class WorkerStateError(QuoteServiceError):
    pass


class ShellUrlNotAllowedError(QuoteServiceError):
    pass
