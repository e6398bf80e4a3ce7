"""Application factory for a minimal auth app."""

import logging

from flask import Flask

from . import auth, config, util


def create_web_app(create_db: bool = False) -> Flask:
    """Initialize and configure an application with cookie auth."""
    app = Flask('sessionauth')
    app.config.from_object(config)
    logging.basicConfig(level=app.config['LOGLEVEL'])

    auth.Auth(app)

    if create_db:
        with app.app_context():
            util.create_all()

    return app
