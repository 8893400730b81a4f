"""pkgscan: static security scanner for package.json manifests."""

__version__ = "0.1.0"
