"""Entry point for running pvectl as a module.

This allows running the CLI with:
    python -m pvectl
"""

from pvectl.cli.main import main

if __name__ == "__main__":
    main()
