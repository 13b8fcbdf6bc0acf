# Controllers package initialization
# Flask blueprints exposing the clinic services over HTTP

from .visit_controller import visits_bp

__all__ = ["visits_bp"]
