"""jamstack-sync: publish content items to a Git-hosted static site."""

__version__ = "0.1.0"
