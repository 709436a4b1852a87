"""ghfetch: cached, rate-limit aware fetching of GitHub API resources."""

__version__ = "0.3.0"
