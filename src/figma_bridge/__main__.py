"""Allow running as `python -m figma_bridge`."""

from .cli import main

if __name__ == "__main__":
    main()
