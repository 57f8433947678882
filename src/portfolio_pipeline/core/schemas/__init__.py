"""Pydantic schemas for messages exchanged over the job queues."""
