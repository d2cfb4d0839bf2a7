"""Allow ``python -m venue_refresh.cli`` execution."""

from venue_refresh.cli.refresh import main

main()
