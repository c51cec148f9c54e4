import asyncio
import functools
import json
from typing import Any, Callable, Dict, Optional

import click
import yaml

from kreflector.clients import auth, login, sources
from kreflector.engines import loggers
from kreflector.reactor import reflecting
from kreflector.structs import configuration, events, references


class LogFormatParamType(click.Choice):

    def __init__(self) -> None:
        super().__init__(choices=[v.name.lower() for v in loggers.LogFormat])

    def convert(self, value: Any, param: Any, ctx: Any) -> loggers.LogFormat:
        if isinstance(value, loggers.LogFormat):
            return value
        name: str = super().convert(value, param, ctx)
        return loggers.LogFormat[name.upper()]


def logging_options(fn: Callable[..., Any]) -> Callable[..., Any]:
    """ A decorator to configure logging in all commands the same way."""
    @click.option('-v', '--verbose', is_flag=True)
    @click.option('-d', '--debug', is_flag=True)
    @click.option('-q', '--quiet', is_flag=True)
    @click.option('--log-format', type=LogFormatParamType(), default='full')
    @click.option('--log-refkey', type=str)
    @click.option('--log-prefix/--no-log-prefix', default=None)
    @functools.wraps(fn)  # to preserve other opts/args
    def wrapper(verbose: bool, quiet: bool, debug: bool,
                log_format: loggers.LogFormat = loggers.LogFormat.FULL,
                log_prefix: Optional[bool] = False,
                log_refkey: Optional[str] = None,
                *args: Any, **kwargs: Any) -> Any:
        loggers.configure(debug=debug, verbose=verbose, quiet=quiet,
                          log_format=log_format, log_refkey=log_refkey, log_prefix=log_prefix)
        return fn(*args, **kwargs)

    return wrapper


@click.version_option(prog_name='kreflector')
@click.group(name='kreflector', context_settings=dict(
    auto_envvar_prefix='KREFLECTOR',
))
def main() -> None:
    pass


@main.command()
@logging_options
@click.option('-n', '--namespace', type=str, default=None)
@click.option('-l', '--selector', '--label-selector', 'label_selector', type=str)
@click.option('--field-selector', type=str)
@click.option('-o', '--output', type=click.Choice(['json', 'yaml']), default='json')
@click.option('--escalate-after', 'error_escalation_threshold',
              type=click.IntRange(min=1), default=None)
@click.option('--context', 'kubeconfig_context', type=str, default=None)
@click.argument('resource')
def watch(
        resource: str,
        namespace: Optional[str],
        label_selector: Optional[str],
        field_selector: Optional[str],
        output: str,
        error_escalation_threshold: Optional[int],
        kubeconfig_context: Optional[str],
) -> None:
    """ Reflect the objects of a resource and print their events infinitely. """
    try:
        parsed_resource = references.parse_resource(resource)
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint='RESOURCE')
    selector = references.Selector(
        namespace=references.NamespaceName(namespace) if namespace else None,
        label_selector=label_selector,
        field_selector=field_selector,
    )
    settings = configuration.ReflectorSettings()
    settings.reflecting.error_escalation_threshold = error_escalation_threshold
    asyncio.run(print_events(
        resource=parsed_resource,
        selector=selector,
        settings=settings,
        output=output,
        kubeconfig_context=kubeconfig_context,
    ))


async def print_events(
        *,
        resource: references.Resource,
        selector: references.Selector,
        settings: configuration.ReflectorSettings,
        output: str,
        kubeconfig_context: Optional[str] = None,
) -> None:
    info = login.login(context=kubeconfig_context)
    async with auth.APIContext(info) as context:
        source = sources.APISource(context, settings=settings)
        async for item in reflecting.reflect(source, resource, selector, settings=settings):
            # The errors are already logged by the reflector; it continues on its own.
            if isinstance(item, (events.Reset, events.Applied, events.Deleted)):
                click.echo(render_event(item, output=output))


def render_event(event: events.Event, *, output: str = 'json') -> str:
    data: Dict[str, Any]
    if isinstance(event, events.Reset):
        data = {'type': 'RESET', 'items': list(event.items)}
    elif isinstance(event, events.Applied):
        data = {'type': 'APPLIED', 'object': event.body}
    elif isinstance(event, events.Deleted):
        data = {'type': 'DELETED', 'object': event.body}
    else:
        raise TypeError(f"Unsupported event: {event!r}")

    if output == 'yaml':
        return '---\n' + yaml.safe_dump(data, sort_keys=False).rstrip('\n')
    else:
        return json.dumps(data, sort_keys=False)
