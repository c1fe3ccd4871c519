"""
Meal subscription lifecycle and kitchen demand server
"""

__version__ = "1.0.0"
