"""Export and import the keyspace of a Redis cluster."""

__version__ = "0.1.0"
