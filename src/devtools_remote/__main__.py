"""Entry point for ``python -m devtools_remote``."""

from .cli import main

if __name__ == "__main__":
    main()
