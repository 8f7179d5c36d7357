#!/usr/bin/env python
"""
Command line entry point for the ImmuneMe sync backend.

Besides the stock Django commands (``migrate``, ``runserver``,
``createsuperuser``) the sync app adds ``expire_sync_sessions``, meant to
be run periodically from cron to retire devices that stopped sending
heartbeats.
"""
import os
import sys


def main() -> None:
    os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'immuneme.settings')
    try:
        from django.core.management import execute_from_command_line  # type: ignore
    except ImportError as exc:
        raise ImportError(
            "Couldn't import Django. Is it installed in the active "
            "environment? Try `pip install -e .`."
        ) from exc
    execute_from_command_line(sys.argv)


if __name__ == '__main__':
    main()
