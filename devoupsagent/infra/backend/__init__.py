"""Backend WebSocket link: connection lifecycle, heartbeat, reconnection, dispatch."""
