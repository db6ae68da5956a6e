"""
Errors raised by the benchmark.
"""


class TransportAbort(RuntimeError):
    """A request could not reach the service; the whole run must stop.

    Attributes:
        operation: Operation type of the failing request (PUT, GET, ...)
        key: Object key of the failing request
    """

    def __init__(self, operation: str, key: str, cause: BaseException = None):
        self.operation = operation
        self.key = key
        self.cause = cause
        message = f"{operation} {key} failed"
        if cause is not None:
            message += f": {cause}"
        super().__init__(message)
