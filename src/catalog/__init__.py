"""Library catalog storage: database adapters, schema and the book writer."""
