"""Error types raised by proxy-forge."""


class ForgeError(RuntimeError):
    """Base error. Carries the output of the command that caused it, if any."""

    def __init__(self, message: str, *, stdout: str | None = None, stderr: str | None = None) -> None:
        super().__init__(message)
        self.stdout = stdout or ""
        self.stderr = stderr or ""


class ManifestError(ForgeError):
    """The deployment manifest could not be loaded or is invalid."""


class DNSProviderError(ForgeError):
    """The DNS provider API rejected a request or could not be reached."""


class ProfileError(ForgeError):
    """A server argument is neither a profile nor a usable host."""
