"""Configuration: YAML settings schema and env-backed gateway credentials."""
