from __future__ import annotations

from .main import main as run_main


def entrypoint() -> None:
    run_main()


if __name__ == "__main__":
    entrypoint()
