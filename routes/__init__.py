from .auth import auth_bp
from .loops import loops_bp
from .templates import templates_bp
from .documents import documents_bp
from .admin import admin_bp
from .settings import settings_bp
from .errors import register_error_handlers


def register_blueprints(app):
    app.register_blueprint(auth_bp)
    app.register_blueprint(loops_bp)
    app.register_blueprint(templates_bp)
    app.register_blueprint(documents_bp)
    app.register_blueprint(admin_bp)
    app.register_blueprint(settings_bp)
