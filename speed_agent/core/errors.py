"""Exception hierarchy for the Speed Agent."""


class SpeedAgentError(Exception):
    """Base class for all agent errors."""


class SiteNotFoundError(SpeedAgentError):
    def __init__(self, site_id: str):
        super().__init__(f"Site {site_id} not found")
        self.site_id = site_id


class EmptyCrawlError(SpeedAgentError):
    def __init__(self, url: str):
        super().__init__(
            f"Crawl returned 0 pages for {url}. The site may be behind bot protection, "
            f"unreachable from this host, or returning error responses."
        )
        self.url = url


class RunAlreadyActiveError(SpeedAgentError):
    def __init__(self, site_id: str):
        super().__init__(f"An optimization run is already active for site {site_id}")
        self.site_id = site_id


class BuildFailedError(SpeedAgentError):
    """A build job finished with status 'failed'."""


class BuildTimeoutError(SpeedAgentError):
    def __init__(self, build_id: str, timeout_seconds: float):
        super().__init__(f"Build {build_id} timed out after {timeout_seconds:.0f}s")
        self.build_id = build_id
        self.timeout_seconds = timeout_seconds


class OptimizeTimeoutError(SpeedAgentError):
    def __init__(self, timeout_seconds: float):
        super().__init__(
            f"Optimization timed out after {timeout_seconds / 60:.0f} minutes. "
            f"The site may have too many pages or assets."
        )
        self.timeout_seconds = timeout_seconds


class ScorerUnavailable(SpeedAgentError):
    """The external scoring API is not configured, rate limited or failing."""
