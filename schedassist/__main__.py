"""
Package entry point.

Allows running the application via:

    python -m schedassist

This simply forwards execution to schedassist.cli.main().
"""

from schedassist.cli import main

if __name__ == "__main__":
    main()
