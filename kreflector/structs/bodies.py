"""
All the structures coming from the Kubernetes(-like) API.

The resources are never wrapped into custom classes: they are delivered
to the consumers as plain JSON-decoded dicts, exactly as received.

For strict type-checking, they are detailed to the per-field level
(e.g. `TypedDict` instead of just ``Mapping[Any, Any]``) --
as used by the reflector. The consumers can use arbitrary fields at runtime,
which are not declared in the type definitions at type-checking time.
"""
from typing import Any, Mapping, Optional, Union

from typing_extensions import Literal, TypedDict

Labels = Mapping[str, str]
Annotations = Mapping[str, str]

#
# Everything marked "raw" is a plain unwrapped unprocessed data as JSON-decoded
# from the API, usually as retrieved in watching or fetching API calls.
# "Input" is a parsed JSON line of the watch-stream as is, including the errors.
#

RawInputType = Literal['ADDED', 'MODIFIED', 'DELETED', 'BOOKMARK', 'ERROR']


class RawMeta(TypedDict, total=False):
    uid: str
    name: str
    namespace: str
    labels: Labels
    annotations: Annotations
    resourceVersion: str
    creationTimestamp: str


class RawBody(TypedDict, total=False):
    apiVersion: str
    kind: str
    metadata: RawMeta
    spec: Mapping[str, Any]
    status: Mapping[str, Any]


# A special payload for type==ERROR (this is not a connection or client error).
class RawError(TypedDict, total=False):
    apiVersion: str     # usually: Literal['v1']
    kind: str           # usually: Literal['Status']
    metadata: Mapping[Any, Any]
    code: int
    reason: str
    status: str
    message: str


# As received from the stream before processing the errors and special cases.
class RawInput(TypedDict, total=True):
    type: RawInputType
    object: Union[RawBody, RawError]


def get_position(body: Union[RawBody, RawError, Mapping[str, Any]]) -> Optional[str]:
    """
    Extract the object's own position (``metadata.resourceVersion``), if any.

    Empty strings are treated as absent: they cannot be used to resume from.
    """
    metadata = body.get('metadata') if isinstance(body, Mapping) else None
    position = metadata.get('resourceVersion') if isinstance(metadata, Mapping) else None
    return str(position) if position else None


def get_name(body: RawBody) -> str:
    """ A short human-readable identity of the object, for logging. """
    namespace = body.get('metadata', {}).get('namespace')
    name = body.get('metadata', {}).get('name', '?')
    return f"{namespace}/{name}" if namespace else name
