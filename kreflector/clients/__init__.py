"""
All the routines to talk to the API servers.

This package is the default source of the reflectors, and it is replaceable:
the reflectors never import it, and only use the abstract contract
(see :mod:`kreflector.reactor.sources`).

Beware: this is NOT a Kubernetes client. It is set of dedicated adapters
specially tailored to do the list & watch tasks, not the generic
object manipulation.
"""
