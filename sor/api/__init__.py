"""HTTP API for the smart order router."""
