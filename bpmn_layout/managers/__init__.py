"""Managers for per-diagram command history."""

from .command_log import CommandLog, CommandRecord

__all__ = ["CommandLog", "CommandRecord"]
