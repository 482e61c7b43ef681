"""
Capability negotiation.

A backend advertises a fixed set of ``Capability`` values. The guard here
is checked before any request is built, so an unsupported call never
touches the network or the rate-limit budget.
"""

from typing import TYPE_CHECKING, Dict, Iterable, List, Union

from .enums import Capability
from .exceptions import UnsupportedOperationError

if TYPE_CHECKING:
    from .backends.base import HostingBackend


def ensure_capability(backend: 'HostingBackend', capability: Capability) -> None:
    """Raise UnsupportedOperationError unless ``backend`` supports ``capability``."""
    if capability not in backend.capabilities():
        raise UnsupportedOperationError.capability(capability, backend.display_name())


def parse_capability(value: Union[str, Capability]) -> Capability:
    """Look up a capability by value ('ssl_installation') or member name."""
    if isinstance(value, Capability):
        return value
    normalized = str(value).strip().lower().replace('-', '_')
    try:
        return Capability(normalized)
    except ValueError:
        raise ValueError(f"Unknown capability: {value}") from None


def missing_capabilities(backend: 'HostingBackend',
                         required: Iterable[Capability]) -> List[Capability]:
    """Return the subset of ``required`` the backend lacks, in input order."""
    supported = backend.capabilities()
    return [capability for capability in required if capability not in supported]


def capability_matrix(backends: Dict[str, 'HostingBackend']) -> Dict[str, Dict[str, bool]]:
    """Map each capability value to which of the given backends support it."""
    return {
        capability.value: {
            name: capability in backend.capabilities()
            for name, backend in backends.items()
        }
        for capability in Capability
    }
