# SPDX-License-Identifier: Apache-2.0

"""
Marketplace Moderation API - Flask application factory.

Wires storage, the moderation ledger, the lifecycle coordinator and the
notification pipeline together, and exposes them over HAL+JSON routes
documented with OpenAPI 3.
"""

import os
from datetime import datetime
from typing import Any, Dict, Optional

from flask import jsonify, make_response, request
from flask_openapi3 import Info, OpenAPI, Tag
from pydantic import ValidationError

from .domain.events import EventBus
from .middleware.auth import AuthMiddleware
from .middleware.error_handler import ErrorHandlerMiddleware, register_custom_error_handlers
from .observability.config import setup_observability
from .observability.middleware import add_observability_middleware
from .services.accounts import AccountDirectory
from .services.amqp import create_amqp_service
from .services.auth import AuthService
from .services.businesses import BusinessStore
from .services.hal import create_hal_formatter
from .services.lifecycle import LifecycleCoordinator
from .services.moderation_requests import ModerationRequestStore
from .services.mongodb import MongoDBService
from .services.notifications import NotificationService
from .services.request_ledger import ModerationConfig, RequestLedger
from .utils.request import format_validation_errors

info = Info(
    title="Marketplace Moderation API",
    version="1.0.0",
    description="Business lifecycle and moderation request workflow with HATEOAS responses"
)

tags = [
    Tag(name="Businesses", description="Business moderation"),
    Tag(name="Moderation Requests", description="Suspension records and owner appeals"),
    Tag(name="Health", description="System health and status")
]


def _load_config(overrides: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    config = {
        'ENV': os.getenv('ENVIRONMENT', 'development'),
        'BASE_URL': os.getenv('BASE_URL', 'http://localhost:5000'),
        'FRONTEND_URL': os.getenv('FRONTEND_URL', 'http://localhost:3000'),
        'MONGODB_URI': os.getenv('MONGODB_URI', 'mongodb://localhost:27017/marketplace_dev'),
        'MONGODB_DATABASE': os.getenv('MONGODB_DATABASE', 'marketplace_dev'),
        'JWT_SECRET': os.getenv('JWT_SECRET', 'dev-secret-key'),
        'JWT_ALGORITHM': os.getenv('JWT_ALGORITHM', 'HS256'),
        'OBSERVABILITY_ENABLED': True,
    }
    config.update(overrides or {})
    config['DEBUG'] = config['ENV'] == 'development'
    return config


def create_app(config: Optional[Dict[str, Any]] = None, **services) -> OpenAPI:
    """
    Build the Flask application.

    Args:
        config: Overrides for the environment-derived configuration
        **services: Pre-built collaborators replacing the defaults, keyed by
            ``database``, ``businesses``, ``requests``, ``accounts``,
            ``notifications``, ``amqp``, ``moderation_config`` and ``clock``

    Returns:
        Configured OpenAPI (Flask) application
    """
    settings = _load_config(config)
    if settings['OBSERVABILITY_ENABLED']:
        setup_observability()

    def validation_error_callback(e: ValidationError):
        # Malformed path or query parameters share the 400 problem document
        problem = hal_formatter.format_validation_error(
            "Request parameters are invalid",
            request.path,
            format_validation_errors(e)
        )
        return make_response(jsonify(problem), 400)

    app = OpenAPI(
        __name__,
        info=info,
        validation_error_status=400,
        validation_error_callback=validation_error_callback
    )
    app.config.update(settings)

    add_observability_middleware(app)

    clock = services.get('clock', datetime.utcnow)

    database = services.get('database') or MongoDBService(settings['MONGODB_URI'], settings['MONGODB_DATABASE'])
    businesses = services.get('businesses') or BusinessStore(database)
    moderation_requests = services.get('requests') or ModerationRequestStore(database)
    accounts = services.get('accounts') or AccountDirectory(database)
    amqp_service = services.get('amqp')
    notifications = services.get('notifications')
    if notifications is None:
        amqp_service = amqp_service or create_amqp_service()
        notifications = NotificationService(amqp_service, database, settings['FRONTEND_URL'])

    events = EventBus()
    request_ledger = RequestLedger(
        database,
        businesses,
        moderation_requests,
        accounts,
        events,
        config=services.get('moderation_config') or ModerationConfig.from_env(),
        clock=clock
    )
    lifecycle = LifecycleCoordinator(
        database,
        businesses,
        accounts,
        request_ledger,
        notifications,
        events=events,
        clock=clock
    )

    auth_service = AuthService(settings['JWT_SECRET'], settings['JWT_ALGORITHM'])
    hal_formatter = create_hal_formatter(settings['BASE_URL'])

    ErrorHandlerMiddleware(app, hal_formatter)
    register_custom_error_handlers(app, hal_formatter)

    # Make services available to routes
    app.mongodb_service = database
    app.amqp_service = amqp_service
    app.notification_service = notifications
    app.request_ledger = request_ledger
    app.lifecycle = lifecycle
    app.auth_service = auth_service
    app.auth_middleware = AuthMiddleware(auth_service)
    app.hal_formatter = hal_formatter

    from .routes.businesses import businesses_bp
    from .routes.requests import requests_bp

    app.register_api(businesses_bp)
    app.register_api(requests_bp)

    @app.get('/api/healthz', tags=[tags[2]])
    def health_check():
        """Report MongoDB and broker reachability."""
        mongodb_health = database.health_check()
        broker_reachable = amqp_service.health_check() if amqp_service is not None else None

        status = "healthy" if mongodb_health.get('status') == 'healthy' else "unhealthy"
        if status == "healthy" and broker_reachable is False:
            status = "degraded"

        health = {
            "status": status,
            "service": "marketplace-moderation-api",
            "version": info.version,
            "environment": app.config['ENV'],
            "timestamp": datetime.utcnow().isoformat() + "Z",
            "dependencies": {
                "mongodb": mongodb_health,
                "amqp": {"reachable": broker_reachable}
            }
        }
        return jsonify(health), 503 if status == "unhealthy" else 200

    return app


if __name__ == '__main__':
    # Development server
    application = create_app()
    application.run(
        host='0.0.0.0',
        port=int(os.getenv('PORT', 5000)),
        debug=application.config['DEBUG']
    )
