"""mimikry CLI: Typer-based command-line interface."""
