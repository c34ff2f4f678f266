from flask import Blueprint

from .health import health
from .sync import sync_api_bp


api_bp = Blueprint("api", __name__)
api_bp.add_url_rule("/health", view_func=health)


__all__ = ["api_bp", "sync_api_bp"]
