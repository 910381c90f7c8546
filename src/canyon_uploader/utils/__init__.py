"""Runner, environment and HTTP helpers."""
