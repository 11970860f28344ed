"""Workflow engine: step handlers, executor, approval gate and selector."""
