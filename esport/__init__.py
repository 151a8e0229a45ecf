"""
esport
E-sport competition platform API: accounts, competitions, match results,
rankings, payments and newsletter.
"""
__version__ = "1.0.0"
