class BootstrapError(RuntimeError):
    """A startup stage failed; the startup signal resolves with this error."""

    stage = "bootstrap"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ConfigError(BootstrapError):
    stage = "config"

    def __init__(self, message: str, path: str | None = None) -> None:
        super().__init__(message)
        self.path = path


class PoolProvisionError(BootstrapError):
    stage = "pool"


class ListenerBindError(BootstrapError):
    stage = "listener"

    def __init__(self, message: str, host: str | None = None, port: int | None = None) -> None:
        super().__init__(message)
        self.host = host
        self.port = port
