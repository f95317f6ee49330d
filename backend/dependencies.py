"""
Dependency injection providers for FastAPI.

The composition root (main.lifespan) builds one instance of each service and
stores it on ``app.state``; these providers hand them to the routes. Tests
swap implementations through ``app.dependency_overrides``.
"""

from fastapi import Request

from services.job_orchestrator import JobOrchestrator
from services.metadata_query import MetadataQuery


def get_job_orchestrator(request: Request) -> JobOrchestrator:
    """
    Factory function for the shared JobOrchestrator.

    Returns:
        JobOrchestrator bound to the app's session registry
    """
    return request.app.state.orchestrator


def get_metadata_query(request: Request) -> MetadataQuery:
    """
    Factory function for the shared MetadataQuery.

    Note: This can be easily swapped for a mock for testing purposes.
    """
    return request.app.state.metadata_query
