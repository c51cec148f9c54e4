"""
Rudimentary login to the API servers: in-cluster or via kubeconfig.

The reflector is not a client library, and avoids bringing too much logic
for proper authentication, especially all the complex auth-providers.
Only the raw credentials are extracted: tokens, certificates, passwords.
"""
import dataclasses
import logging
import os
from typing import Any, Dict, List, Optional

import yaml

from kreflector.structs import credentials

logger = logging.getLogger(__name__)

# As per https://kubernetes.io/docs/tasks/run-application/access-api-from-pod/
SERVICE_ACCOUNT_DIR = '/var/run/secrets/kubernetes.io/serviceaccount'
IN_CLUSTER_SERVER = 'https://kubernetes.default.svc'

# As per https://kubernetes.io/docs/concepts/configuration/organize-cluster-access-kubeconfig/
DEFAULT_KUBECONFIG = '~/.kube/config'


def login(*, context: Optional[str] = None) -> credentials.ConnectionInfo:
    """
    Detect the credentials: in-cluster first, then via the kubeconfig files.

    If the kubeconfig context is explicitly requested, the in-cluster
    service account is not considered at all.
    """
    if context is None:
        info = login_with_service_account()
        if info is not None:
            logger.debug("Logged in with the in-cluster service account.")
            return info

    info = login_with_kubeconfig(context=context)
    if info is not None:
        logger.debug("Logged in with the kubeconfig files.")
        return info

    raise credentials.LoginError("Cannot authenticate neither in-cluster, nor via kubeconfig.")


def login_with_service_account() -> Optional[credentials.ConnectionInfo]:
    """
    Get the raw credentials of the pod's service account, if mounted.

    Only the token is required. The namespace & CA are used when present.
    """
    token = _read_service_account_file('token')
    if token is None:
        return None

    ca_path = os.path.join(SERVICE_ACCOUNT_DIR, 'ca.crt')
    return credentials.ConnectionInfo(
        server=IN_CLUSTER_SERVER,
        ca_path=ca_path if os.path.exists(ca_path) else None,
        token=token or None,
        default_namespace=_read_service_account_file('namespace') or None,
    )


def _read_service_account_file(name: str) -> Optional[str]:
    path = os.path.join(SERVICE_ACCOUNT_DIR, name)
    if not os.path.exists(path):
        return None
    with open(path, encoding='utf-8') as f:
        return f.read().strip()


@dataclasses.dataclass
class _KubeConfig:
    """ Several kubeconfig files merged into one: the first seen value wins. """
    current_context: Optional[str] = None
    contexts: Dict[str, Dict[str, Any]] = dataclasses.field(default_factory=dict)
    clusters: Dict[str, Dict[str, Any]] = dataclasses.field(default_factory=dict)
    users: Dict[str, Dict[str, Any]] = dataclasses.field(default_factory=dict)

    def merge(self, config: Dict[str, Any]) -> None:
        if self.current_context is None:
            self.current_context = config.get('current-context')
        for section, key, target in [
            ('contexts', 'context', self.contexts),
            ('clusters', 'cluster', self.clusters),
            ('users', 'user', self.users),
        ]:
            for item in config.get(section) or []:
                target.setdefault(item['name'], item.get(key) or {})


def login_with_kubeconfig(*, context: Optional[str] = None) -> Optional[credentials.ConnectionInfo]:
    """
    Get the raw credentials from the kubeconfig files, if there are any.

    The files are taken from ``$KUBECONFIG`` (separated as ``$PATH`` is),
    or from ``~/.kube/config`` if the variable is not set and the file exists.
    The absent or broken files listed explicitly are errors, not skipped.

    The auth-providers' tokens are used as they are stored; they are never
    refreshed, since it would require the provider-specific logic.
    """
    paths = _find_kubeconfigs()
    if not paths:
        return None

    merged = _KubeConfig()
    for path in paths:
        with open(path, encoding='utf-8') as f:
            merged.merge(yaml.safe_load(f.read()) or {})

    context_name = context if context is not None else merged.current_context
    if context_name is None:
        raise credentials.LoginError("Current context is not set in kubeconfigs.")
    if context_name not in merged.contexts:
        raise credentials.LoginError(f"Context {context_name!r} is not found in kubeconfigs.")

    ctx = merged.contexts[context_name]
    cluster = merged.clusters.get(ctx.get('cluster'), {})
    user = merged.users.get(ctx.get('user'), {})
    provider_token = user.get('auth-provider', {}).get('config', {}).get('access-token')
    return credentials.ConnectionInfo(
        server=cluster.get('server'),
        ca_path=cluster.get('certificate-authority'),
        ca_data=cluster.get('certificate-authority-data'),
        insecure=cluster.get('insecure-skip-tls-verify'),
        certificate_path=user.get('client-certificate'),
        certificate_data=user.get('client-certificate-data'),
        private_key_path=user.get('client-key'),
        private_key_data=user.get('client-key-data'),
        username=user.get('username'),
        password=user.get('password'),
        token=user.get('token') or provider_token,
        default_namespace=ctx.get('namespace'),
    )


def _find_kubeconfigs() -> List[str]:
    envvar = os.environ.get('KUBECONFIG', '')
    if envvar:
        paths = [path.strip() for path in envvar.split(os.pathsep)]
        return [os.path.expanduser(path) for path in paths if path]
    default_path = os.path.expanduser(DEFAULT_KUBECONFIG)
    return [default_path] if os.path.exists(default_path) else []
