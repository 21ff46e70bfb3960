class SyncException(Exception):
    """Base exception for all metadata sync errors."""
    pass

class ExtractionFailure(SyncException):
    """Raised when a repository URL does not point at a GitHub repository."""
    def __init__(self, url: str):
        self.url = url
        super().__init__(f"Failed to get GitHub path from {url!r}.")

class TransportError(SyncException):
    """Raised when the GitHub API cannot be reached (connection error, timeout)."""
    pass

class RemoteUnavailable(SyncException):
    """Raised when the GitHub API answers with anything other than HTTP 200."""
    def __init__(self, status: int, path: str = ""):
        self.status = status
        self.path = path
        super().__init__(f"Failed to get GitHub data for {path or 'repository'}: HTTP {status}.")

class ParseError(SyncException):
    """Raised when the GitHub API response body is not a JSON object."""
    pass

class DatabaseException(SyncException):
    """Raised when a database operation fails."""
    pass

class PersistFailure(DatabaseException):
    """Raised when writing GitHub fields back onto a package fails."""
    pass
