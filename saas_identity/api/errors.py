"""Error handlers for the application."""
from flask import jsonify, request
from werkzeug.exceptions import HTTPException

from saas_identity.core.errors import ProvisioningError


def register_error_handlers(app):
    """Register error handlers with the Flask app."""

    @app.errorhandler(ProvisioningError)
    def provisioning_error(error):
        """Provisioning failures are client-visible 400s with the failure message."""
        app.logger.warning(f"{request.method} {request.path} failed: {error.message}")
        return jsonify({"error": "Bad Request", "message": error.message}), 400

    @app.errorhandler(400)
    def bad_request(error):
        """Handle 400 Bad Request errors."""
        return jsonify({"error": "Bad Request", "message": str(error.description)}), 400

    @app.errorhandler(404)
    def not_found(error):
        """Handle 404 Not Found errors."""
        return jsonify({"error": "Not Found", "message": "Resource not found"}), 404

    @app.errorhandler(405)
    def method_not_allowed(error):
        return jsonify({"error": "Method Not Allowed", "message": f"{request.method} not allowed on {request.path}"}), 405

    @app.errorhandler(500)
    def internal_error(error):
        """Handle 500 Internal Server Error."""
        app.logger.error(f"Internal error: {error}", exc_info=True)
        return jsonify({"error": "Internal Server Error", "message": "An unexpected error occurred"}), 500

    @app.errorhandler(Exception)
    def handle_exception(error):
        """Handle uncaught exceptions."""
        # Pass through HTTP errors
        if isinstance(error, HTTPException):
            return error

        app.logger.error(f"Unhandled exception: {error}", exc_info=True)
        return jsonify({"error": "Internal Server Error", "message": "An unexpected error occurred"}), 500
