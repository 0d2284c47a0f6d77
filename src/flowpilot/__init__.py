"""
flowpilot - tasks and polling triggers against a workflow orchestrator's REST API.

Subpackages:
- flowpilot.core: errors, logging, settings, clock
- flowpilot.query: filter building, page walking, result projection
- flowpilot.client: HTTP client for the orchestrator API
- flowpilot.health: anomaly classification for schedules and assets
- flowpilot.tasks: one-shot task functions
- flowpilot.triggers: polling triggers and their evaluation loop
"""

__version__ = "0.1.0"
