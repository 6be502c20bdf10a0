class TickerClientError(Exception):
    pass


class TransportNotConnectedError(TickerClientError):
    def __init__(self, event: str) -> None:
        super().__init__(f"cannot emit {event!r}: transport is not connected")
        self.event = event


class AckTimeoutError(TickerClientError):
    def __init__(self, event: str, timeout: float) -> None:
        super().__init__(f"no acknowledgement for {event!r} within {timeout:.1f}s")
        self.event = event
        self.timeout = timeout
