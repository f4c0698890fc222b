"""Exception types raised by the link routing core.

Only ``LinkNotFoundError`` ever reaches the HTTP layer. The other types mark
failures that the resolver and the dispatcher absorb after logging them.
"""

__all__ = [
    "LinkRouterError",
    "DataIntegrityError",
    "TransientStoreError",
    "LinkNotFoundError",
    "DownstreamDispatchError",
]


class LinkRouterError(Exception):
    """Base class for all link routing errors."""


class DataIntegrityError(LinkRouterError):
    """A stored payload does not match the LinkRecord shape."""


class TransientStoreError(LinkRouterError):
    """The ephemeral cache could not be read or written."""


class LinkNotFoundError(LinkRouterError):
    """No authoritative record exists for the requested link id."""

    def __init__(self, link_id: str):
        super().__init__(f"Link '{link_id}' not found")
        self.link_id = link_id


class DownstreamDispatchError(LinkRouterError):
    """A click fan-out step (queue send or actor call) failed."""

    def __init__(self, step: str, message: str):
        super().__init__(f"{step}: {message}")
        self.step = step
