# Copyright 2026 Zsolt Kulcsar and Contributors. Licensed under the EUPL-1.2 or later
"""Error kinds raised by mapping load, composition and application."""


class RemapError(RuntimeError):
    """Represent any failure raised by the remapping library."""


class FormatError(RemapError):
    """Represent mapping content that matches no supported notation."""


class NamespaceNotFoundError(RemapError):
    """Represent a requested naming tier missing from a multi-tier source."""


class EmptyChainError(RemapError):
    """Represent a merge request on a chain without hops."""


class MalformedKeyError(RemapError):
    """Represent a member key that cannot be split into owner, name and descriptor."""


class RemapIOError(RemapError):
    """Represent a local read or write failure during one operation."""
