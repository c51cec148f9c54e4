import dataclasses
import re
import urllib.parse
from typing import Dict, Iterator, List, Mapping, NewType, Optional

# A specific really existing addressable namespace (at least, the one assumed to be so).
# Made as a NewType for stricter type-checking to avoid collisions with other strings.
NamespaceName = NewType('NamespaceName', str)

# A namespace reference usable in the API calls. `None` means cluster-wide API calls.
Namespace = Optional[NamespaceName]

# Detect conventional API versions for some cases: e.g. in "myresources.v1alpha1.example.com".
# Non-conventional versions are indistinguishable from API groups ("myresources.foo1.example.com").
K8S_VERSION_PATTERN = re.compile(r'^v\d+(?:(?:alpha|beta)\d+)?$')


@dataclasses.dataclass(frozen=True, eq=False, repr=False)
class Resource:
    """
    A reference to a very specific custom or built-in resource kind.

    It is used to form the API URLs. Generally, the API only needs
    an API group, an API version, and a plural name of the resource.
    """

    group: str
    """
    The resource's API group; e.g. ``"example.com"``, ``"apps"``, ``"batch"``.
    For Core v1 API resources, an empty string: ``""``.
    """

    version: str
    """
    The resource's API version; e.g. ``"v1"``, ``"v1beta1"``, etc.
    """

    plural: str
    """
    The resource's plural name; e.g. ``"pods"``, ``"deployments"``.
    It is used as an API endpoint, together with API group & version.
    """

    namespaced: Optional[bool] = None
    """
    Whether the resource is namespaced (``True``) or cluster-scoped (``False``).
    """

    def __hash__(self) -> int:
        return hash((self.group, self.version, self.plural))

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Resource):
            self_tuple = (self.group, self.version, self.plural)
            other_tuple = (other.group, other.version, other.plural)
            return self_tuple == other_tuple
        else:
            return NotImplemented

    def __repr__(self) -> str:
        return f'{self.plural}.{self.version}.{self.group}'.strip('.')

    # Mostly for tests and unpacking.
    def __iter__(self) -> Iterator[str]:
        return iter((self.group, self.version, self.plural))

    def get_url(
            self,
            *,
            server: Optional[str] = None,
            namespace: Namespace = None,
            params: Optional[Mapping[str, str]] = None,
    ) -> str:
        """
        Build a URL of the resource list to be used with the API.

        If the namespace is not set, a cluster-wide URL is returned.
        For cluster-scoped resources, the namespace is not accepted.

        Params go to the query parameters (``?param1=value1&param2=value2...``).
        """
        if self.namespaced is False and namespace is not None:
            raise ValueError("Specific namespaces are not supported for cluster-scoped resources.")

        parts: List[Optional[str]] = [
            '/api' if self.group == '' and self.version == 'v1' else '/apis',
            self.group,
            self.version,
            'namespaces' if namespace is not None else None,
            namespace,
            self.plural,
        ]

        query = urllib.parse.urlencode(params, encoding='utf-8') if params else ''
        path = '/'.join([part for part in parts if part])
        url = path + ('?' if query else '') + query
        return url if server is None else server.rstrip('/') + '/' + url.lstrip('/')


def parse_resource(text: str, *, namespaced: Optional[bool] = None) -> Resource:
    """
    Interpret a resource as typed on the command line.

    Supported notations are ``plural``, ``plural.group``,
    and ``plural.version.group``. A bare plural name is a core v1 resource
    (e.g. ``pods``), the same as ``kubectl`` does.
    """
    if not text or text.startswith('.') or text.endswith('.'):
        raise ValueError(f"Unrecognised resource: {text!r}")
    elif '.' in text and K8S_VERSION_PATTERN.match(text.split('.')[1]):
        plural, version, *group = text.split('.', 2)
        return Resource(group[0] if group else '', version, plural, namespaced=namespaced)
    elif '.' in text:
        plural, group = text.split('.', 1)
        return Resource(group, 'v1', plural, namespaced=namespaced)
    else:
        return Resource('', 'v1', text, namespaced=namespaced)


@dataclasses.dataclass(frozen=True)
class Selector:
    """
    Server-side filtering of the listed & watched objects.

    It is the same for all the listings & watches of one reflector,
    since the positions are only meaningful for the same selection.
    """

    namespace: Namespace = None
    label_selector: Optional[str] = None
    field_selector: Optional[str] = None
    limit: Optional[int] = None
    continue_token: Optional[str] = None

    def as_params(self, *, paging: bool = True) -> Dict[str, str]:
        """ The query parameters; the paging ones are only for the listings. """
        params: Dict[str, str] = {}
        if self.field_selector:
            params['fieldSelector'] = self.field_selector
        if self.label_selector:
            params['labelSelector'] = self.label_selector
        if not paging:
            return params
        if self.limit is not None:
            params['limit'] = str(self.limit)
        if self.continue_token:
            params['continue'] = self.continue_token
        return params

    def __str__(self) -> str:
        where = f'in {self.namespace!r}' if self.namespace is not None else 'cluster-wide'
        params = self.as_params()
        extra = ', '.join(f'{key}={val}' for key, val in params.items())
        return f'{where} ({extra})' if extra else where
