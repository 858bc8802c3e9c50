"""Exception types raised by rmmkit actions."""


class RmmError(Exception):
    """Base class for all rmmkit errors."""


class ElevationRequiredError(RmmError):
    """The action needs an elevated (Administrator or SYSTEM) shell."""


class InstallError(RmmError):
    """The VPN client could not be downloaded or installed."""


class ConfigWriteError(RmmError):
    """The VPN configuration could not be decoded, patched or written."""


class RegistryUnavailableError(RmmError):
    """The Windows registry API is not available on this platform."""


class ActionAborted(RmmError):
    """A critical step failed and the action stopped."""

    def __init__(self, step: str, error: str | None = None):
        self.step = step
        self.error = error
        super().__init__(f"critical step '{step}' failed" + (f": {error}" if error else ""))
