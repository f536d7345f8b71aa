"""Configuration and error helpers shared by the relay tools and the CLI."""
