"""Exception taxonomy for robot construction, queries and graph assembly."""


class DynamicsError(Exception):
    """Base class for all jax_dynamics errors."""


class MalformedStructureError(DynamicsError, ValueError):
    """A structural description cannot be turned into a robot.

    Raised at construction time for duplicate names, joints referencing
    unknown links, or links disconnected from the base.
    """


class InvalidEndpointError(DynamicsError, ValueError):
    """A joint was asked about a link it does not connect."""


class NoSuchJointError(DynamicsError, LookupError):
    """No joint directly connects the two requested links."""


class AmbiguousJointError(DynamicsError, LookupError):
    """More than one joint directly connects the two requested links."""


class UnsupportedLinkDegreeError(DynamicsError, NotImplementedError):
    """A link has more incident joints than the wrench-balance factor supports."""


class UnsupportedCollocationError(DynamicsError, NotImplementedError):
    """The requested collocation scheme is not implemented."""
