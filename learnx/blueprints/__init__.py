from .payments import payments_bp
from .admin import admin_bp
from .catalog import catalog_bp
from .notes import notes_bp

__all__ = ['payments_bp', 'admin_bp', 'catalog_bp', 'notes_bp']
