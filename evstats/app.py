"""
EVStats - Flask Application

JSON API over the analytics engine. Datasets arrive in request bodies;
nothing is persisted apart from the trained-model cache.

Run with:
    flask --app evstats.app run
or:
    python -m evstats.app
"""

import logging
import os

from flask import Flask, jsonify

from evstats import __version__
from evstats.config import Config
from evstats.extensions import cache
from evstats.routes import register_blueprints

# Configure logging
logging.basicConfig(
    level=getattr(logging, Config.LOG_LEVEL.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def init_cache(app):
    """Initialize cache based on environment."""
    if app.config.get('TESTING') or os.environ.get('FLASK_TESTING'):
        cache.init_app(app, config={'CACHE_TYPE': 'NullCache'})
    else:
        cache.init_app(app, config={
            'CACHE_TYPE': 'SimpleCache',
            'CACHE_DEFAULT_TIMEOUT': Config.CACHE_TIMEOUT_SECONDS
        })


def create_app(testing: bool = False) -> Flask:
    """Build a configured Flask application."""
    flask_app = Flask(__name__)
    flask_app.config.from_object(Config)
    flask_app.config['TESTING'] = testing

    init_cache(flask_app)
    register_blueprints(flask_app)

    @flask_app.route("/api/status", methods=["GET"])
    def status():
        return jsonify({"status": "ok", "version": __version__})

    return flask_app


app = create_app()


if __name__ == '__main__':
    logger.info(f"Starting EVStats API on {Config.FLASK_HOST}:{Config.FLASK_PORT}")
    app.run(host=Config.FLASK_HOST, port=Config.FLASK_PORT, debug=Config.DEBUG)
