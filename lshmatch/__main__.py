"""Allow ``python -m lshmatch``."""

from .cli import main

if __name__ == "__main__":
    main()
