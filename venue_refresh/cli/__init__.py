"""Command-line tools for venue-refresh.

- ``python -m venue_refresh.cli run`` -- one scheduled refresh run
- ``python -m venue_refresh.cli status`` -- last run record and lock holder

Heavy imports (providers, SDK clients) are deferred into the command
handlers so ``--help`` stays fast.
"""
