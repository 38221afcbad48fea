"""Command-line interface: pacifica-history fetch | group."""
