"""Flask routes for ccc."""

from ccc.routes.hooks import hooks_bp

__all__ = [
    "hooks_bp",
]


def register_blueprints(app):
    """Register all blueprints with the Flask app.

    Args:
        app: The Flask application instance.
    """
    app.register_blueprint(hooks_bp, url_prefix="/hook")
