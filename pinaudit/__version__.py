"""pinaudit version; the CLI, the User-Agent header and packaging read it from here."""

__version__ = "0.3.0"
