"""Flask application factory."""
import os
import traceback

from flask import Flask, request, jsonify
from flask_wtf.csrf import CSRFProtect, CSRFError

from crm.database import init_db


def create_app(config_object='config.Config'):
    """Create and configure the Flask application."""
    app = Flask(__name__)
    app.config.from_object(config_object)

    # Initialize CSRF protection
    csrf = CSRFProtect(app)

    @app.errorhandler(CSRFError)
    def handle_csrf_error(e):
        app.logger.warning(f"CSRF Error: {e.description}")
        return jsonify({'status': 'error', 'message': 'Sessão expirada. Recarregue a página.'}), 400

    # Sentry error tracking in production
    if app.config.get('SENTRY_DSN') and app.config.get('ENV') == 'production':
        import sentry_sdk
        from sentry_sdk.integrations.flask import FlaskIntegration

        sentry_sdk.init(
            dsn=app.config['SENTRY_DSN'],
            integrations=[FlaskIntegration()],
            traces_sample_rate=0.1,
            profiles_sample_rate=0.1,
            environment=app.config.get('ENV'),
            release=os.getenv('GIT_COMMIT', 'unknown')
        )

    # Conversation context of the WhatsApp assistant (Redis)
    from crm.services.conversation_store import init_conversation_store
    init_conversation_store(app)

    # Prometheus metrics instrumentation
    from crm.blueprints.metrics import setup_metrics_instrumentation
    setup_metrics_instrumentation(app)

    # Production: HTTPS behind a reverse proxy
    if app.config.get('ENV') == 'production':
        from werkzeug.middleware.proxy_fix import ProxyFix
        app.wsgi_app = ProxyFix(
            app.wsgi_app,
            x_for=1,
            x_proto=1,
            x_host=1,
            x_port=1,
            x_prefix=0
        )

    # Initialize database
    init_db(app)

    # Load user and organization context before each request
    from crm.middleware import load_user_and_organization

    @app.before_request
    def before_request_handler():
        load_user_and_organization()

    # Error Handlers
    from crm.exceptions import CrmError

    @app.errorhandler(CrmError)
    def handle_crm_error(error):
        """Handle custom application exceptions."""
        app.logger.error(f"CrmError [{error.status_code}] on {request.path}: {error.message}")
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(404)
    def not_found_error(error):
        return jsonify({'status': 'error', 'message': 'Não encontrado'}), 404

    @app.errorhandler(405)
    def method_not_allowed(error):
        return jsonify({'status': 'error', 'message': 'Método não permitido'}), 405

    @app.errorhandler(500)
    @app.errorhandler(Exception)
    def internal_error(error):
        app.logger.error(f"Unhandled Exception: {error}")
        app.logger.error(f"Traceback: {traceback.format_exc()}")
        return jsonify({'status': 'error', 'message': 'Erro interno do servidor'}), 500

    # Register blueprints
    from crm.blueprints.auth import auth_bp
    from crm.blueprints.sales import sales_bp
    from crm.blueprints.products import products_bp
    from crm.blueprints.leads import leads_bp
    from crm.blueprints.payment_methods import payment_methods_bp
    from crm.blueprints.onboarding import onboarding_bp
    from crm.blueprints.whatsapp import whatsapp_bp
    from crm.blueprints.metrics import metrics_bp
    from crm.blueprints.webhooks import webhooks_bp

    app.register_blueprint(auth_bp)
    app.register_blueprint(sales_bp)
    app.register_blueprint(products_bp)
    app.register_blueprint(leads_bp)
    app.register_blueprint(payment_methods_bp)
    app.register_blueprint(onboarding_bp)
    app.register_blueprint(whatsapp_bp)
    app.register_blueprint(metrics_bp)

    # Webhooks must be exempt from CSRF
    csrf.exempt(webhooks_bp)
    app.register_blueprint(webhooks_bp)

    from crm.cli_commands import init_cli_commands
    init_cli_commands(app)

    return app
