"""Statistical calculations over imported signal data."""
