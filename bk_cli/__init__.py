"""
Buildkite metrics operator CLI.
"""
