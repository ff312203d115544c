class CodexRouterError(Exception):
    """Base class for every error raised by codex-router."""


class InvalidName(CodexRouterError, ValueError):
    pass


class AlreadyExists(CodexRouterError, FileExistsError):
    pass


class MalformedCredentials(CodexRouterError, ValueError):
    pass


class MalformedProfile(CodexRouterError, ValueError):
    pass


class MissingHomeDirectoryStructure(CodexRouterError, FileNotFoundError):
    pass


class RefreshFailed(CodexRouterError, RuntimeError):
    def __init__(self, status_code: int, body: str):
        self.status_code = status_code
        self.body = body
        super().__init__(f"Token refresh failed (HTTP {status_code}): {body}")


class RefreshResponseInvalid(CodexRouterError, ValueError):
    pass
