"""Domain-specific errors for flipqs."""


class FlipqsError(Exception):
    """Base error for flipqs."""


class ConfigLoadError(FlipqsError):
    """Raised when the configuration file cannot be read."""


class ConfigValidationError(FlipqsError):
    """Raised when the configuration does not conform to schema or semantics."""


class CapabilityError(FlipqsError):
    """Raised when a capability name cannot be resolved."""


class PanelError(FlipqsError):
    """Base panel lifecycle error."""


class PermissionMissingError(PanelError):
    """Raised when the overlay-drawing permission is not granted."""


class ViewConstructionError(PanelError):
    """Raised when the overlay surface cannot be built."""


class PanelWiringError(PanelError):
    """Raised when the panel is used before its collaborators are attached."""
