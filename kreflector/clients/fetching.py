"""
Listing the objects: all at once or page by page.

A listing is a consistent snapshot of the objects at one position, even if
it is split into pages: the server keeps the position of the first page
in the continue-tokens of all the following pages.
"""
from typing import Any, Collection, Dict, List, Mapping, Optional, Tuple

from kreflector.clients import api, auth
from kreflector.helpers import typedefs
from kreflector.structs import bodies, configuration, references


async def list_objs(
        *,
        context: auth.APIContext,
        settings: configuration.ReflectorSettings,
        resource: references.Resource,
        selector: references.Selector,
        logger: typedefs.Logger,
) -> Tuple[Collection[bodies.RawBody], Optional[str]]:
    """
    List the objects of specific resource type.

    Without the selector's namespace, the objects of all namespaces are listed
    (or of the whole cluster for the cluster-scoped resources).
    """
    return await _list_pages(
        params=selector.as_params(),
        context=context,
        settings=settings,
        resource=resource,
        selector=selector,
        logger=logger,
    )


async def list_objs_from_version(
        *,
        context: auth.APIContext,
        settings: configuration.ReflectorSettings,
        resource: references.Resource,
        selector: references.Selector,
        version: str,
        logger: typedefs.Logger,
) -> Tuple[Collection[bodies.RawBody], Optional[str]]:
    """
    List the objects of specific resource type as of (or newer than) a position.

    Position ``"0"`` means "any position": the server can serve it from its
    caches, so it is cheaper than the plain listing, but can be slightly stale.
    """
    return await _list_pages(
        params=dict(selector.as_params(), resourceVersion=version),
        context=context,
        settings=settings,
        resource=resource,
        selector=selector,
        logger=logger,
    )


async def _list_pages(
        *,
        params: Dict[str, str],
        context: auth.APIContext,
        settings: configuration.ReflectorSettings,
        resource: references.Resource,
        selector: references.Selector,
        logger: typedefs.Logger,
) -> Tuple[Collection[bodies.RawBody], Optional[str]]:
    items: List[bodies.RawBody] = []
    position: Optional[str] = None
    while True:
        rsp = await api.get(
            url=resource.get_url(namespace=selector.namespace, params=params),
            context=context,
            settings=settings,
            logger=logger,
        )
        metadata = rsp.get('metadata') or {}
        position = metadata.get('resourceVersion') or position
        items.extend(_with_kinds(rsp))

        continue_token = metadata.get('continue')
        if not continue_token:
            return items, position

        # The position is encoded in the token; both at once are rejected by the servers.
        logger.debug(f"Listed {len(items)} objects so far; fetching the next page.")
        params = {key: val for key, val in params.items() if key != 'resourceVersion'}
        params['continue'] = continue_token


def _with_kinds(rsp: Mapping[str, Any]) -> List[bodies.RawBody]:
    """ Fill the items' kinds & versions from the list's ones (they are omitted by the servers). """
    list_kind: Optional[str] = rsp.get('kind')
    kind = list_kind[:-4] if list_kind and list_kind.endswith('List') else list_kind
    items: List[bodies.RawBody] = []
    for item in rsp.get('items') or []:
        if kind:
            item.setdefault('kind', kind)
        if 'apiVersion' in rsp:
            item.setdefault('apiVersion', rsp['apiVersion'])
        items.append(item)
    return items
