"""HTTP clients for the source archive and AI services."""
