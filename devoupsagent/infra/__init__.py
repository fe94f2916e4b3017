"""Infrastructure: backend connection, command execution, local control plane."""
