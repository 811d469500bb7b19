"""Wrappers adding cross-cutting behavior to a workflow."""

from .logger import LoggedWorkflow, logger_middleware

__all__ = ["LoggedWorkflow", "logger_middleware"]
