"""Exception hierarchy shared by all pillars."""

from typing import Optional

AUTH_REMEDIATION = (
    "Invalid OpenAI API key. Please enter a valid key. "
    "You can find your API key at https://platform.openai.com/account/api-keys "
    "or set it as an environment variable named OPENAI_API_KEY."
)


class ClarabotError(Exception):
    """Base class for every error raised by the package."""


class ConfigError(ClarabotError):
    """The configuration file could not be read or validated."""


class LoadError(ClarabotError):
    """A capability unit failed discovery, validation or initialization."""

    def __init__(self, message: str, path: Optional[str] = None):
        super().__init__(message)
        self.path = path


class DuplicateCapabilityError(LoadError):
    """A capability id is already registered and the policy rejects duplicates."""


class InvocationError(ClarabotError):
    """A capability failed while executing. Always reported inside an envelope."""


class CompletionAPIError(ClarabotError):
    """Transport, rate-limit or status failure from the completion API."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class AuthenticationError(CompletionAPIError):
    """The completion API rejected the credentials (HTTP 401)."""

    def __init__(self, message: str = AUTH_REMEDIATION):
        super().__init__(message, status_code=401)


class CompletionTimeout(CompletionAPIError):
    """The completion API did not answer within the configured timeout."""


class CallChainTooDeep(ClarabotError):
    """The model kept requesting function calls past the configured depth."""

    def __init__(self, depth: int):
        super().__init__(f"function call chain exceeded maximum depth of {depth}")
        self.depth = depth


class GenerationError(ClarabotError):
    """The model did not return stop-terminated source code."""


class BuildError(ClarabotError):
    """The build toolchain rejected a generated source file."""

    def __init__(self, diagnostic: str):
        super().__init__(diagnostic)
        self.diagnostic = diagnostic


class GenerationPipelineFailure(ClarabotError):
    """The build retry budget was exhausted."""

    def __init__(self, message: str, artifact=None):
        super().__init__(message)
        self.artifact = artifact
