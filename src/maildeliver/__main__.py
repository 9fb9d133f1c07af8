"""maildeliver module entrypoint for ``python -m maildeliver``."""

from __future__ import annotations

from .cli import main

if __name__ == "__main__":  # pragma: no cover - module execution guard
    main()
