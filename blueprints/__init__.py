"""Blueprint package for gateway routes.

Exports the registered blueprints to be imported by the application factory.
"""

from .control import control_bp  # noqa: F401
from .gateway import gateway_bp  # noqa: F401
