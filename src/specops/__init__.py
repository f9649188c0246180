"""specops: build and automation tooling for a multi-version OpenAPI spec."""

__version__ = "0.1.0"
