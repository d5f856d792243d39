"""Console entry point: ``RUN_MODE`` picks the long-running service or the CLI."""

from __future__ import annotations

import structlog

structlog.configure(
    processors=[
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.JSONRenderer(),
    ],
)

logger = structlog.get_logger()


def main():
    from reminderbot.shared.config import get_settings

    settings = get_settings()
    if settings.run_mode.strip().lower() == "api":
        from reminderbot.api import serve

        serve(settings)
        return

    from reminderbot.cli import cli

    cli()


if __name__ == "__main__":
    main()
