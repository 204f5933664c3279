"""Vercel entry point. Imports the Flask app from the project root."""
import sys
import os

# Add project root to PYTHONPATH so `undercurrent` and `web_interview` resolve
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from web_interview import app  # noqa: F401  (Vercel detects `app`)
