"""
Core infrastructure: database, clock, errors
"""
