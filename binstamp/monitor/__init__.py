"""binstamp result display.

Modules
-------
renderer
    ``ResultRenderer`` turns ``BatchReport`` and ``StampResult`` into Rich
    panels and tables for the CLI.
"""
