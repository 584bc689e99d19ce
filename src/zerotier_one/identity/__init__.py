"""Node identities and the zerotier-idtool utility."""

from zerotier_one.identity.identity import Identity

__all__ = ["Identity"]
