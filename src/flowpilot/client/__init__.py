"""HTTP client for the orchestration API."""

from flowpilot.client.http import OrchestratorClient, encode_filters

__all__ = ["OrchestratorClient", "encode_filters"]
