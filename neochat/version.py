"""Single source of truth for the neochat package version."""

VERSION = "0.4.0"
