"""Main entry point for the leafnote package."""

from leafnote.cli import main

if __name__ == "__main__":
    main()
