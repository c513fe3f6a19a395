"""
Records REST API backed by a Google Sheets spreadsheet.

- :mod:`FuelTracker.backend.config` – Environment driven configuration classes.
- :mod:`FuelTracker.backend.sheets` – The spreadsheet record store.
- :mod:`FuelTracker.backend.views` – The ``/records`` endpoints.

Run the development server with ``python -m FuelTracker.backend``.
"""
import logging
import os

from flask import Flask, jsonify

from .config import config


def create_app(config_name=None, store=None):
    """Application factory pattern

    Args:
        config_name: Key of :data:`config.config`. Defaults to ``$FLASK_ENV`` or development.
        store: The record store to serve. Defaults to a :class:`~FuelTracker.backend.sheets.SheetsStore`
            built from the configuration.
    """
    if config_name is None:
        config_name = os.environ.get('FLASK_ENV', 'development')

    app = Flask(__name__)
    app.config.from_object(config[config_name])

    if store is None:
        from .sheets import SheetsStore
        store = SheetsStore.from_config(app.config)
    app.extensions['fuel_records_store'] = store

    @app.after_request
    def add_cors_headers(response):
        """Allow the records API to be called from any origin"""
        for header, value in app.config.get('CORS_HEADERS', {}).items():
            response.headers[header] = value
        return response

    from .views import records_bp
    app.register_blueprint(records_bp, url_prefix=app.config.get('API_PREFIX') or None)

    register_error_handlers(app)

    logging.info(f'Records API ready ({config_name})')
    return app


def register_error_handlers(app):
    """Register JSON error handlers"""

    @app.errorhandler(404)
    def not_found_error(error):
        return jsonify({'success': False, 'error': 'Not found'}), 404

    @app.errorhandler(405)
    def method_not_allowed_error(error):
        return jsonify({'success': False, 'error': 'Method not allowed'}), 405

    @app.errorhandler(500)
    def internal_error(error):
        logging.error(f'Internal Server Error: {error}')
        return jsonify({'success': False, 'error': 'Internal server error'}), 500
