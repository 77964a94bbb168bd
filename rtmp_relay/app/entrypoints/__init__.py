"""Process entrypoints for the relay service."""
