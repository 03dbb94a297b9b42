"""Core utilities shared across sitewizard packages."""
