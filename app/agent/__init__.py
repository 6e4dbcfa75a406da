"""Skill dispatch: typed configs, security checks, executors and the tool loader."""
