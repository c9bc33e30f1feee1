"""Slack hub for agent bots: encrypted secret store, reactive settings, slash-command parsing and event handling."""

__version__ = "0.1.0"