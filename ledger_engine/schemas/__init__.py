"""Pydantic request and response schemas for the collaborator layer."""
