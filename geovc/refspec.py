"""Turns push arguments into concrete (local ref, remote ref) pairs."""
import logging
import re

from . import base
from . import data
from . import errors
from . import remote as remote_
from .types import RefSpec

logger = logging.getLogger(__name__)

_INVALID_REF_CHARS = re.compile(r'[\s~^:?*\[\\]')


def resolve(remote=None, refspecs=(), all_=False) -> tuple[str, list[RefSpec]]:
    """Returns the remote to push to and the refspecs to push.

    With `all_`, every local branch is pushed to the same name and
    `refspecs` are ignored. Without refspecs the current branch is pushed
    to its upstream.
    """
    if remote is None:
        remote = _default_remote()

    if all_:
        specs = [RefSpec(name, name)
                 for name, ref in data.iter_refs(base.HEADS, deref=False)
                 if not ref.symbolic]
    elif refspecs:
        specs = [parse(text) for text in refspecs]
    else:
        specs = [_upstream_refspec()]

    destinations = set()
    for spec in specs:
        if spec.destination in destinations:
            raise errors.InvalidRefSpec(str(spec), f'{spec.destination} is pushed more than once')
        destinations.add(spec.destination)

    logger.debug('resolved %s to %s', remote, ', '.join(map(str, specs)) or 'nothing')
    return remote, specs


def parse(text) -> RefSpec:
    if text.startswith('+'):
        raise errors.InvalidRefSpec(text, 'forced updates are not supported')
    source, sep, destination = text.partition(':')
    if ':' in destination:
        raise errors.InvalidRefSpec(text, 'expected source[:destination]')
    if not source:
        raise errors.InvalidRefSpec(text, 'deleting remote refs is not supported')
    if sep and not destination:
        raise errors.InvalidRefSpec(text, 'empty destination')

    source = _resolve_source(text, source)
    if not destination:
        destination = source
    elif not destination.startswith('refs/') and destination != 'HEAD':
        namespace = base.TAGS if source.startswith(base.TAGS) else base.HEADS
        destination = f'{namespace}{destination}'
    _check_ref_name(text, destination)
    return RefSpec(source, destination)


def _resolve_source(text, name):
    _check_ref_name(text, name)
    for ref in (name, f'refs/{name}', f'{base.TAGS}{name}', f'{base.HEADS}{name}'):
        value = data.get_ref(ref, deref=False)
        if not value.value:
            continue
        seen = {ref}
        while value.symbolic:
            ref = value.value
            if ref in seen:
                raise errors.InvalidRefSpec(text, f'symbolic ref loop at {ref}')
            seen.add(ref)
            value = data.get_ref(ref, deref=False)
        if not value.value:
            raise errors.InvalidRefSpec(text, f'{name} points to {ref}, which does not exist')
        return ref
    raise errors.InvalidRefSpec(text, f'{name} does not match any local ref')


def _check_ref_name(text, name):
    if (not name
            or name.startswith('/') or name.endswith('/')
            or '..' in name or '//' in name
            or name.endswith('.lock')
            or _INVALID_REF_CHARS.search(name)):
        raise errors.InvalidRefSpec(text, f'{name!r} is not a valid ref name')


def _default_remote():
    branch = base.get_branch_name()
    if branch is not None and (upstream := base.get_upstream(branch)):
        return upstream[0]
    if 'origin' in set(remote_.iter_remote_names()):
        return 'origin'
    raise errors.NoUpstreamConfigured(branch)


def _upstream_refspec():
    branch = base.get_branch_name()
    if branch is None:
        raise errors.NoUpstreamConfigured(None)
    upstream = base.get_upstream(branch)
    if upstream is None:
        raise errors.NoUpstreamConfigured(branch)
    source = f'{base.HEADS}{branch}'
    if not data.get_ref(source).value:
        raise errors.InvalidRefSpec(branch, f'{source} has no commits yet')
    return RefSpec(source, upstream[1])
