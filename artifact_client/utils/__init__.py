"""
Small formatting helpers shared by the CLI.
"""
