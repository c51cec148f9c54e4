from typing import Collection, Optional, Tuple

from kreflector.clients import auth, fetching, watching
from kreflector.helpers import typedefs
from kreflector.structs import bodies, configuration, references


class APISource:
    """
    The reflector's source backed by a real API server via aiohttp.

    It is a thin adapter of the API calls to the reflector's contract
    (see :class:`kreflector.reactor.sources.Source`). The context (the session)
    is owned by the caller, and can be shared by multiple sources & reflectors.
    """

    def __init__(
            self,
            context: auth.APIContext,
            *,
            settings: Optional[configuration.ReflectorSettings] = None,
            logger: typedefs.Logger = watching.logger,
    ) -> None:
        super().__init__()
        self.context = context
        self.settings = settings if settings is not None else configuration.ReflectorSettings()
        self.logger = logger

    async def list(
            self,
            resource: references.Resource,
            selector: references.Selector,
    ) -> Tuple[Collection[bodies.RawBody], Optional[str]]:
        return await fetching.list_objs(
            context=self.context,
            settings=self.settings,
            resource=resource,
            selector=selector,
            logger=self.logger,
        )

    async def list_from_version(
            self,
            resource: references.Resource,
            selector: references.Selector,
            version: str,
    ) -> Tuple[Collection[bodies.RawBody], Optional[str]]:
        return await fetching.list_objs_from_version(
            context=self.context,
            settings=self.settings,
            resource=resource,
            selector=selector,
            version=version,
            logger=self.logger,
        )

    async def watch(
            self,
            resource: references.Resource,
            selector: references.Selector,
            since: str,
    ) -> watching.StreamingResponse:
        return await watching.watch_objs(
            context=self.context,
            settings=self.settings,
            resource=resource,
            selector=selector,
            since=since,
            logger=self.logger,
        )
