from .health import health_bp
from .auth import auth_bp
from .account_unlock import unlock_bp
from .password_reset import reset_bp
from .admin import admin_bp
from .audit_logs import audit_bp
