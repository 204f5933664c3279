"""
Undercurrent - voice-driven career discovery interview engine.

Walks a user through a fixed question catalog, reflects on each answer
with a short coaching response, runs the three-path Odyssey exercise and
produces an emailed synthesis report.
"""

__version__ = "0.1.0"
