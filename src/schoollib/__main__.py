"""Main entry point for the schoollib package."""

from schoollib.cli import app


def main():
    """Run the command-line interface."""
    app()


if __name__ == "__main__":
    main()
