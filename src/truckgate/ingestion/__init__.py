"""Ingestion layer.

Adapters that turn raw bus messages into typed domain events and route
them to the lifecycle coordinator.
"""

__all__: list[str] = []
