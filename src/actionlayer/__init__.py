"""actionlayer: uniform action execution and result normalization.

Public API:
    - Action / AsyncAction: template-method base for business operations
    - ActionExecutor: single catch site mapping failures to results
    - ActionResult: immutable outcome consumed by boundary adapters
    - Config: explicit executor configuration
    - CallerIdentity: explicit caller capabilities
"""

from __future__ import annotations

import logging

from actionlayer.action import Action, AsyncAction
from actionlayer.config import Config, resolve_config
from actionlayer.errors import (
    ActionError,
    ActionFailure,
    ConfigurationError,
    GenericFailure,
    InvalidErrorStructureError,
    PermissionFailure,
    UnexpectedFailure,
    ValidationFailure,
)
from actionlayer.executor import ActionExecutor, create_executor
from actionlayer.identity import CallerIdentity, check_permissions
from actionlayer.result import ActionResult, Response
from actionlayer.service import InMemoryRepository, Page, Repository, Service
from actionlayer.validation import RuleValidator, validate

try:
    from importlib.metadata import PackageNotFoundError, version

    __version__ = version("actionlayer")
except PackageNotFoundError:
    __version__ = "0.0.0+unknown"

# Library-level NullHandler: stay silent unless the consumer configures logging.
logging.getLogger("actionlayer").addHandler(logging.NullHandler())

__all__ = [
    "Action",
    "ActionError",
    "ActionExecutor",
    "ActionFailure",
    "ActionResult",
    "AsyncAction",
    "CallerIdentity",
    "Config",
    "ConfigurationError",
    "GenericFailure",
    "InMemoryRepository",
    "InvalidErrorStructureError",
    "Page",
    "PermissionFailure",
    "Repository",
    "Response",
    "RuleValidator",
    "Service",
    "UnexpectedFailure",
    "ValidationFailure",
    "check_permissions",
    "create_executor",
    "resolve_config",
    "validate",
]
