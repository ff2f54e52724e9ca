"""Exceptions raised by the synthesis stage."""


class SynthesisError(Exception):
    """Base class for fatal synthesis failures."""


class SynthesisUnseedable(SynthesisError):
    """No non-empty, placeable cluster is left to seed the canvas with."""


class EmptyTextonCollection(SynthesisUnseedable):
    """The cluster collection holds no texton at all."""
