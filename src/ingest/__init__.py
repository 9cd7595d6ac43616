"""Resumable ingestion of public-domain books into the catalog."""
