"""Conversation feature package: entities, services, orchestrator, and router.

This package owns conversations and their messages: ordered persistence,
cursor pagination, soft delete with a timed undo window, and the per-turn
flow that asks the completion adapter for a reply.
"""
