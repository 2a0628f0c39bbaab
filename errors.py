"""Domain errors raised below the route layer; main.py maps them to HTTP codes."""


class ConfigError(RuntimeError):
    """Raised at startup when required configuration is missing or invalid."""


class DuplicateError(Exception):
    def __init__(self, field: str, value: str):
        super().__init__(f"{field} {value!r} already exists")
        self.field = field
        self.value = value


class UnsupportedMediaError(Exception):
    pass


class UploadTooLargeError(Exception):
    def __init__(self, limit: int):
        super().__init__(f"File exceeds the {limit} byte upload limit")
        self.limit = limit


class UpstreamError(Exception):
    """A store, media host or mail provider call failed. The cause is chained."""
