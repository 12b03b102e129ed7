from runnerfleet.clients.github import GitHubClient
from runnerfleet.clients.linode import LinodeClient

__all__ = ["GitHubClient", "LinodeClient"]
