"""Pipelines for startup ingestion and tag synchronization.

Each step is callable independently of the HTTP layer.
"""
