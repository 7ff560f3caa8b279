"""Exception classes raised outside the request pipeline."""


class TunnelError(Exception):
    """Base exception for the tunnel service."""

    def __init__(self, code: str, message: str):
        self.code = code
        self.message = message
        super().__init__(message)


class ConfigurationError(TunnelError):
    """Startup configuration is unusable; the server must not start."""

    def __init__(self, message: str):
        super().__init__("CONFIGURATION_ERROR", message)
