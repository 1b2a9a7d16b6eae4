"""Backend package: DB models, pipelines, APIs.

This package ingests plain-text reports into the relational store and the
search index, and serves listing, search and tagging over HTTP.
"""
