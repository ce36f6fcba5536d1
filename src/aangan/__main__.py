"""Entry point for running aangan as a module."""

from .cli import app


def main() -> None:
    """Main entry point for the aangan CLI application."""
    app()


if __name__ == "__main__":
    main()
