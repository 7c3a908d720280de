"""
Flask extensions for EVStats.

Extensions shared across the application live here to avoid circular
imports between app.py and the route modules.
"""

from flask_caching import Cache

# Trained models keyed by dataset fingerprint; configured in app.init_cache
cache = Cache()
