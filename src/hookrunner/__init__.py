"""hookrunner.

Runs local automations in response to signed GitHub webhook deliveries:
- HMAC signature verification
- event normalization and trigger matching against configured workflows
- deadline-bounded shell dispatch with sanitized template variables
"""

__version__ = "0.1.0"

from hookrunner.config import Config, WorkflowConfig

__all__ = ["__version__", "Config", "WorkflowConfig"]
