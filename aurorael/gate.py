class InFlightGate:
    """Rejects new work once ``limit`` requests are being processed.

    This is an admission valve, not a queue: callers that fail ``try_enter``
    are expected to answer immediately.
    """

    def __init__(self, limit: int) -> None:
        self.limit = limit
        self.in_flight = 0

    def try_enter(self) -> bool:
        if self.in_flight >= self.limit:
            return False
        self.in_flight += 1
        return True

    def leave(self) -> None:
        if self.in_flight > 0:
            self.in_flight -= 1
