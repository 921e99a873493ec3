"""Flask application factory and service client initialization."""
from __future__ import annotations

import logging
import logging.config
import os
from pathlib import Path
from typing import Any, Callable, Mapping

from flask import Flask
from openai import OpenAI

import config as app_config
from init import AppServices, initialize_app
from routes import assets as routes_assets
from routes import chat as routes_chat
from routes import links as routes_links
from routes import lookups as routes_lookups
from routes import plugin as routes_plugin
from routes import reports as routes_reports
from routes import tools as routes_tools
from routes import web as routes_web

logger = logging.getLogger(__name__)


def _determine_log_level(flask_app: Flask) -> int:
    if flask_app.debug:
        return logging.DEBUG
    if os.environ.get('FLASK_DEBUG', '').lower() in {'1', 'true', 'yes', 'on'}:
        return logging.DEBUG
    return logging.INFO


def _configure_logging(flask_app: Flask, log_file: str) -> None:
    log_level = _determine_log_level(flask_app)
    log_path = Path(log_file)
    try:
        log_path.parent.mkdir(parents=True, exist_ok=True)
    except OSError:
        pass

    for handler in list(flask_app.logger.handlers):
        flask_app.logger.removeHandler(handler)

    logging.config.dictConfig(
        {
            'version': 1,
            'disable_existing_loggers': False,
            'formatters': {
                'standard': {
                    'format': '%(asctime)s %(levelname)s [%(name)s] %(message)s',
                    'datefmt': '%Y-%m-%d %H:%M:%S',
                }
            },
            'handlers': {
                'console': {
                    'class': 'logging.StreamHandler',
                    'formatter': 'standard',
                    'level': log_level,
                    'stream': 'ext://sys.stdout',
                },
                'file': {
                    'class': 'logging.handlers.RotatingFileHandler',
                    'formatter': 'standard',
                    'level': logging.DEBUG,
                    'filename': os.fspath(log_path),
                    'maxBytes': 5 * 1024 * 1024,
                    'backupCount': 5,
                    'encoding': 'utf-8',
                },
            },
            'root': {
                'level': log_level,
                'handlers': ['console', 'file'],
            },
        }
    )
    flask_app.logger.setLevel(log_level)


def _openai_client(api_key: str) -> OpenAI:
    return OpenAI(api_key=api_key)


def configure_blueprints(
    flask_app: Flask, services: AppServices, settings: Mapping[str, Any]
) -> None:
    routes_web.configure({
        'app_password': settings['APP_PASSWORD'],
        'is_store_configured': lambda: services.configured,
        'get_store': lambda: services.store,
    })
    routes_assets.configure({
        'services': services,
        'duplicate_page_size': services.duplicate_page_size,
        'max_workers': services.max_workers,
    })
    routes_lookups.configure({
        'services': services,
    })
    routes_links.configure({
        'services': services,
    })
    routes_reports.configure({
        'services': services,
    })
    routes_chat.configure({
        'services': services,
    })
    routes_plugin.configure({
        'services': services,
        'allow_origin': settings.get('PLUGIN_ALLOW_ORIGIN', '*'),
        'page_size': services.page_size,
    })

    flask_app.register_blueprint(routes_web.web_blueprint)
    flask_app.register_blueprint(routes_plugin.plugin_blueprint)
    flask_app.register_blueprint(routes_assets.assets_blueprint)
    flask_app.register_blueprint(routes_lookups.lookups_blueprint)
    flask_app.register_blueprint(routes_links.links_blueprint)
    flask_app.register_blueprint(routes_reports.reports_blueprint)
    flask_app.register_blueprint(routes_chat.chat_blueprint)
    flask_app.register_blueprint(routes_tools.tools_blueprint)


def create_app(
    overrides: Mapping[str, Any] | None = None,
    *,
    chat_client_factory: Callable[[str], Any] | None = _openai_client,
) -> Flask:
    """Return a configured Flask application instance.

    ``overrides`` replaces any of :func:`config.default_settings`.
    """

    settings: dict[str, Any] = dict(app_config.default_settings())
    if overrides:
        settings.update(overrides)

    flask_app = Flask(__name__)
    flask_app.secret_key = settings['APP_SECRET_KEY']
    flask_app.config['TESTING'] = bool(settings.get('TESTING', False))
    flask_app.config['TRACKER_SETTINGS'] = settings

    _configure_logging(flask_app, settings['LOG_FILE'])

    services = initialize_app(settings=settings, chat_client_factory=chat_client_factory)
    flask_app.extensions['tracker'] = services

    configure_blueprints(flask_app, services, settings)
    logger.info(
        'Application ready (database %s)',
        'configured' if services.configured else 'not configured',
    )
    return flask_app


__all__ = ['configure_blueprints', 'create_app']
