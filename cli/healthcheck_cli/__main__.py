"""Entry point for `python -m healthcheck_cli` and `healthcheck` console script."""

from __future__ import annotations

from healthcheck_cli.app import app


def main() -> None:
    app()


if __name__ == "__main__":
    main()
