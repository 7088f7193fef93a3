"""Exception types raised at construction and loading seams.

Event handlers and public orchestrator entry points never let these escape;
they are raised only where a caller hands the engine bad input up front
(invalid settings, malformed scene snapshots).
"""

from __future__ import annotations


class VisionerError(Exception):
    pass


class ConfigError(VisionerError, ValueError):
    pass


class SceneFormatError(VisionerError, ValueError):
    pass
