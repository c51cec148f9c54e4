import base64
import os
import ssl
import tempfile
from typing import Any, Dict, List, Optional

import aiohttp

from kreflector.helpers import versions
from kreflector.structs import credentials


class APIContext:
    """
    A container for an aiohttp session and the environment info.

    One context is usually shared by all the reflectors of the same process:
    they all run in the same event loop, so there is no need to split
    the sessions. The context must be created in that event loop,
    and closed explicitly or via ``async with``.
    """

    session: aiohttp.ClientSession
    server: str
    default_namespace: Optional[str]

    def __init__(
            self,
            info: credentials.ConnectionInfo,
    ) -> None:
        super().__init__()
        self._tempfiles = _TempFiles()
        try:
            ssl_context = _make_ssl_context(info, self._tempfiles)
        except Exception:
            self._tempfiles.purge()
            raise

        basic_auth: Optional[aiohttp.BasicAuth] = None
        if info.username and info.password:
            basic_auth = aiohttp.BasicAuth(info.username, info.password)

        self.session = aiohttp.ClientSession(
            connector=aiohttp.TCPConnector(limit=0, ssl=ssl_context),
            headers=_make_headers(info),
            auth=basic_auth,
        )
        self.server = info.server
        self.default_namespace = info.default_namespace

    async def __aenter__(self) -> "APIContext":
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    async def close(self) -> None:
        await self.session.close()
        self._tempfiles.purge()


def _make_headers(info: credentials.ConnectionInfo) -> Dict[str, str]:
    headers: Dict[str, str] = {
        'User-Agent': f'kreflector/{versions.version or "unknown"}',
    }
    if info.scheme or info.token:
        parts = [info.scheme or 'Bearer', info.token]
        headers['Authorization'] = ' '.join(part for part in parts if part)
    return headers


def _make_ssl_context(
        info: credentials.ConnectionInfo,
        tempfiles: "_TempFiles",
) -> ssl.SSLContext:
    ca_path = _resolve_path('CA', info.ca_path, info.ca_data, tempfiles)
    cert_path = _resolve_path('certificate', info.certificate_path, info.certificate_data, tempfiles)
    key_path = _resolve_path('private key', info.private_key_path, info.private_key_data, tempfiles)

    context = ssl.create_default_context(purpose=ssl.Purpose.SERVER_AUTH, cafile=ca_path)
    if cert_path and key_path:
        context.load_cert_chain(certfile=cert_path, keyfile=key_path)
    if info.insecure:
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE
    return context


def _resolve_path(
        what: str,
        path: Optional[str],
        data: Optional[bytes],
        tempfiles: "_TempFiles",
) -> Optional[str]:
    """
    Get a file path for the SSL data given either as a path or as base64 data.

    The SSL library accepts only the files, so the data go to temporary files.
    """
    if path and data:
        raise credentials.LoginError(f"Both {what} path & data are set. Need only one.")
    elif data:
        return tempfiles.write(base64.b64decode(data))
    else:
        return path or None


class _TempFiles:
    """
    Temporary files with the SSL data, kept until the API context is closed.

    The same content is written only once. The files are also removed
    on garbage collection, in case the context was never closed.
    """

    def __init__(self) -> None:
        super().__init__()
        self._paths: Dict[bytes, str] = {}

    def __del__(self) -> None:
        self.purge()

    def __len__(self) -> int:
        return len(self._paths)

    @property
    def paths(self) -> List[str]:
        return list(self._paths.values())

    def write(self, content: bytes) -> str:
        if content not in self._paths:
            with tempfile.NamedTemporaryFile(prefix='kreflector-', delete=False) as f:
                f.write(content)
            self._paths[content] = f.name
        return self._paths[content]

    def purge(self) -> None:
        while self._paths:
            _, path = self._paths.popitem()
            try:
                os.remove(path)
            except FileNotFoundError:
                pass
