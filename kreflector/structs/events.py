"""
Events as yielded by the reflector to its consumers.

There are only three of them: the full reset of the known objects
(after every listing), and the per-object changes from the watch-streams.
The creations and modifications are indistinguishable for the consumers:
both are "applied" -- the consumers only get the latest state of the object.
"""
import dataclasses
from typing import Sequence, Union

from kreflector.structs import bodies


@dataclasses.dataclass(frozen=True)
class Reset:
    """ All objects as currently known; anything not listed here is gone. """
    items: Sequence[bodies.RawBody]


@dataclasses.dataclass(frozen=True)
class Applied:
    """ An object was created or modified. """
    body: bodies.RawBody


@dataclasses.dataclass(frozen=True)
class Deleted:
    """ An object was deleted; its last known state is provided. """
    body: bodies.RawBody


Event = Union[Reset, Applied, Deleted]
