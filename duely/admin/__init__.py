"""Admin back-office services."""
