"""Web API for the timer."""
