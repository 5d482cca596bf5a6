class PortfolioException(Exception):
    """Base exception for all portfolio-related errors."""
    pass

class ProviderException(PortfolioException):
    """Raised when the repository data provider cannot answer a request."""
    pass

class ResourceNotFoundException(ProviderException):
    """Raised when a repository, file or tree does not exist."""
    def __init__(self, resource: str):
        self.resource = resource
        super().__init__(f"Resource not found: {resource}")

class RateLimitExceededException(ProviderException):
    """Raised when the GitHub REST rate limit is hit."""
    def __init__(self, reset_at: str, message: str = "GitHub API rate limit exceeded."):
        self.reset_at = reset_at
        super().__init__(f"{message} Resets at: {reset_at}")

class ConfigurationException(PortfolioException):
    """Raised when the portfolio settings are invalid."""
    pass
