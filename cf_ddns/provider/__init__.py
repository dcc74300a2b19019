"""DNS provider clients."""
