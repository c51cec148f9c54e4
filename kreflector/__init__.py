"""
The main module for all the exported functions & classes.
"""
# isort: skip_file

# Unlike all other places, where we import other modules and refer
# the functions via the modules, this is the library's top-level interface,
# as it is seen by the users. So, we export the individual functions.

from kreflector.clients.auth import (
    APIContext,
)
from kreflector.clients.errors import (
    APIError,
    APIClientError,
    APIServerError,
    APIUnauthorizedError,
    APIForbiddenError,
    APINotFoundError,
    APIConflictError,
    APIGoneError,
)
from kreflector.clients.login import (
    login,
    login_with_kubeconfig,
    login_with_service_account,
)
from kreflector.clients.sources import (
    APISource,
)
from kreflector.engines.loggers import (
    LogFormat,
    ReflectorLogger,
    configure,
)
from kreflector.helpers.typedefs import (
    Logger,
)
from kreflector.helpers.versions import (
    version as __version__,
)
from kreflector.reactor.reflecting import (
    reflect,
)
from kreflector.reactor.sources import (
    Source,
    WatchStream,
    is_gone,
)
from kreflector.structs.bodies import (
    RawBody,
    RawInput,
    RawError,
    get_position,
)
from kreflector.structs.configuration import (
    ReflectorSettings,
    NetworkingSettings,
    WatchingSettings,
    ReflectingSettings,
)
from kreflector.structs.credentials import (
    ConnectionInfo,
    LoginError,
)
from kreflector.structs.errors import (
    ReflectorError,
    InitialListFailed,
    WatchStartFailed,
    WatchError,
    WatchFailed,
    WatchStatusError,
    PositionMissingError,
)
from kreflector.structs.events import (
    Event,
    Reset,
    Applied,
    Deleted,
)
from kreflector.structs.references import (
    Resource,
    Selector,
    parse_resource,
)

__all__ = [
    'reflect',
    'Source', 'WatchStream', 'is_gone',
    'APISource', 'APIContext',
    'login', 'login_with_kubeconfig', 'login_with_service_account',
    'ConnectionInfo', 'LoginError',
    'APIError', 'APIClientError', 'APIServerError',
    'APIUnauthorizedError', 'APIForbiddenError', 'APINotFoundError',
    'APIConflictError', 'APIGoneError',
    'ReflectorError', 'InitialListFailed', 'WatchStartFailed',
    'WatchError', 'WatchFailed', 'WatchStatusError', 'PositionMissingError',
    'Event', 'Reset', 'Applied', 'Deleted',
    'RawBody', 'RawInput', 'RawError', 'get_position',
    'Resource', 'Selector', 'parse_resource',
    'ReflectorSettings', 'NetworkingSettings', 'WatchingSettings', 'ReflectingSettings',
    'LogFormat', 'ReflectorLogger', 'configure',
    'Logger',
    '__version__',
]
