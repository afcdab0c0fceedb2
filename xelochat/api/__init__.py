"""API module initialization."""
