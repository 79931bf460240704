"""relay — HTTP surfaces of portrelay: the redirect listeners and the update API."""
