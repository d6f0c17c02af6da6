"""
Gofer - remote desktop agent boundary layer

Policy-gated shell execution and AI-judged desktop watching for an
autonomous agent driven from a chat channel or a local terminal.
"""

__version__ = "0.1.0"

from gofer.config import Config, get_config

__all__ = ["Config", "get_config", "__version__"]
