"""Healthcheck engine for fleets of release databases.

Quick start::

    import asyncio

    from healthcheck.checks.builtin import create_default_registry
    from healthcheck.config import load_settings
    from healthcheck.report import ReportManager
    from healthcheck.runner import run_pass

    settings = load_settings(server_url="/data/release", database_patterns=["COREDBS"])
    reports = ReportManager()
    summary = asyncio.run(run_pass(settings, create_default_registry(), reports, ["release"]))
    for check, lines in reports.aggregate_by_check().items():
        ...
"""

__version__ = "0.1.0"
