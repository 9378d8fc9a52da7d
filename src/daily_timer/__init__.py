"""
Daily Timer

A small desktop application that walks the selected members of a team
through a per-person countdown during the daily standup.
"""

__version__ = "1.0.0"
__author__ = "Daily Timer Team"
