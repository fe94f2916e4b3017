"""Local control plane: JSON-RPC over a Unix domain socket."""
