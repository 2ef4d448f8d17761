"""Exception hierarchy for zone setup.

Every fatal condition derives from ZoneSetupError so entry points can turn
it into a one-line message and exit status 1.
"""

from __future__ import annotations


class ZoneSetupError(RuntimeError):
    """Base class for fatal setup and rotation errors."""


class CommandError(ZoneSetupError):
    """A host command could not be started or exited non-zero."""


class MetadataError(ZoneSetupError):
    """The metadata agent failed (as opposed to a key being absent)."""


class DirectoryError(ZoneSetupError):
    """The registry service could not be reached or returned bad data."""


class ConfigDocumentError(ZoneSetupError):
    """The local config-agent document is missing, unreadable or invalid."""


class ServiceActivationError(ZoneSetupError):
    """A managed service could not be imported, enabled or restarted."""


class RotationConfigError(ZoneSetupError, ValueError):
    """A log rotation stream or schedule is invalid."""


class FragmentNotFoundError(ZoneSetupError):
    """No rotated fragment is waiting to be consolidated."""


class SetupError(ZoneSetupError):
    """A bootstrap precondition failed."""
