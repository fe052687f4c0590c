"""
pgselfhost - Self-hosted PostgreSQL + TimescaleDB + pgAdmin stack provisioner
"""

__version__ = "2.1.0"

from .core import StackProvisioner
from .errors import ProvisionerError

__all__ = ["StackProvisioner", "ProvisionerError"]
