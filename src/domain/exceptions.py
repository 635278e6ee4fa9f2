from typing import Optional, Sequence


class DependencyUpdaterException(Exception):
    """Base exception for all dependency-updater errors."""
    pass

class ConfigurationException(DependencyUpdaterException):
    """Raised when the repository roster cannot be loaded or validated."""
    pass

class OrgSessionException(DependencyUpdaterException):
    """Raised when an authenticated session for an organisation cannot be established."""
    def __init__(self, org: str, reason: str):
        self.org = org
        super().__init__(f"Could not establish a session for '{org}': {reason}")

class ChangeOperationException(DependencyUpdaterException):
    """Raised when the external change tool crashes or produces an unusable report."""
    pass

class CommandFailedException(DependencyUpdaterException):
    """Raised when a subprocess exits with an unexpected status or times out."""
    def __init__(self, args: Sequence[str], returncode: Optional[int], stderr: str = ""):
        self.args_list = list(args)
        self.returncode = returncode
        self.stderr = stderr
        status = "timed out" if returncode is None else f"exited with {returncode}"
        detail = f": {stderr}" if stderr else ""
        super().__init__(f"Command '{' '.join(self.args_list)}' {status}{detail}")

class GitHubApiException(DependencyUpdaterException):
    """Raised when a GitHub REST call fails after retries."""
    def __init__(self, status: int, message: str):
        self.status = status
        super().__init__(f"GitHub API error ({status}): {message}")

class ConsistencyException(DependencyUpdaterException):
    """Raised when the change report and the pull request reference disagree."""
    pass

class PersistenceException(DependencyUpdaterException):
    """Raised when the run report cannot be written or archived."""
    pass
