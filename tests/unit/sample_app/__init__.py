"""Sample record package used by the unit tests."""
