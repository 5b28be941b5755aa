"""Sports-academy marketplace backend."""
