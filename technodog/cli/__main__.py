"""Allow ``python -m technodog.cli`` execution."""

from technodog.cli.commands import main

main()
