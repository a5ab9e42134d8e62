"""Web API for the statistics engine."""
