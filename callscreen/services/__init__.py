"""Controllers and clients for the hosted voice, details and query services."""
