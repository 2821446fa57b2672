"""Allow running as ``python -m inbox_a2a``."""

from inbox_a2a.cli import main

if __name__ == "__main__":
    main()
