"""Domain layer — statuses, entities, packaging, and the lifecycle engine.

This layer depends only on stdlib and pydantic.
It must never import from services, infrastructure, commands, or config.
"""
