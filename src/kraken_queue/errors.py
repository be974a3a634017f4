from __future__ import annotations


class KrakenError(RuntimeError):
    """Base class for every failure surfaced by the client.

    ``retry_worthy`` tells calling code whether resubmitting the same call
    later could reasonably succeed.
    """

    retry_worthy = False


class UnknownMethodError(KrakenError):
    def __init__(self, method: str) -> None:
        super().__init__(f"{method} is not a valid API method")
        self.method = method


class ConfigurationError(KrakenError):
    pass


class NetworkFailure(KrakenError):
    retry_worthy = True

    def __init__(self, message: str, *, attempts: int) -> None:
        super().__init__(f"{message} (attempts={attempts})")
        self.attempts = attempts


class ResponseFormatError(KrakenError):
    def __init__(self, message: str, *, body: bytes = b"") -> None:
        super().__init__(f"Could not parse response from server: {message}")
        self.body = body


class RemoteError(KrakenError):
    def __init__(self, code: str) -> None:
        super().__init__(f"Kraken API returned error: {code}")
        self.code = code
