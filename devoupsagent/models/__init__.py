"""Domain models: connection state, wire messages, command results."""
