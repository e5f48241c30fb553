from importlib.metadata import version, PackageNotFoundError


def main():
    """Main entry point for the package."""
    from . import server

    server.main()


# Package metadata helpers
try:
    __version__ = version("gridsync")
except PackageNotFoundError:  # pragma: no cover
    __version__ = "0.0.0+dev"

# Server identity (keep in sync with server title)
SERVER_NAME = "GridSync Session Server"

# Public API
__all__ = ["main", "__version__", "SERVER_NAME"]
