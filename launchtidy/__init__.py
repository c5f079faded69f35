"""
launchtidy: rebuild, reorganize and rewrite the macOS Launchpad layout.
"""

__version__ = "0.1.0"
