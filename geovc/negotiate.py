"""Works out what a remote is missing for one refspec, and whether updating it is safe.

Negotiation only reads: local refs and objects, and the remote's refs.
A push is safe when the remote ref is absent, or when its current commit
is an ancestor of the local one (a fast-forward). Anything else would
leave remote commits unreachable, so it is refused.
"""
import logging
from collections import deque
from typing import NamedTuple

from . import base
from . import data
from . import errors
from . import types
from .remote import Transport
from .types import FastForward, Rejected, UpToDate

logger = logging.getLogger(__name__)


class AncestryWalk(NamedTuple):
    found: bool
    hit_shallow: bool  # the walk stopped at a commit whose parents are not here
    visited: int


def find_ancestor(start: types.OID, target: types.OID, shallow=frozenset()) -> AncestryWalk:
    """Walks parent edges back from `start` looking for `target`."""
    queue = deque([start])
    visited = set()
    hit_shallow = False

    while queue:
        oid = queue.popleft()
        if oid in visited:
            continue
        visited.add(oid)
        if oid == target:
            return AncestryWalk(True, hit_shallow, len(visited))
        if oid in shallow:
            hit_shallow = True
            continue
        queue.extend(base.get_commit(oid).parents)

    return AncestryWalk(False, hit_shallow, len(visited))


def negotiate(refspec: types.RefSpec, transport: Transport, progress=None) -> types.Negotiation:
    if progress is not None:
        progress.set_description(f'Negotiating {refspec.destination}')

    local = data.get_ref(refspec.source)
    if not local.value:
        raise errors.LocalRefNotFound(refspec.source)
    new = local.value

    remote_ref = transport.read_ref(refspec.destination)
    if remote_ref.symbolic:
        return _reject(refspec, 'CANNOT_PUSH_TO_SYMBOLIC_REF',
                       f'{refspec.destination} is a symbolic ref to {remote_ref.value}')

    old = remote_ref.value
    if old == new:
        logger.info('%s is up to date at %s', refspec.destination, new)
        return UpToDate(refspec, new)

    shallow = data.get_shallow()
    if old is None:
        have_objects = set()
    else:
        walk = find_ancestor(new, old, shallow)
        logger.debug('ancestry walk from %s visited %d commits', new, walk.visited)
        if not walk.found:
            if walk.hit_shallow:
                return _reject(refspec, 'HISTORY_TOO_SHALLOW',
                               f'cannot tell whether {old} is an ancestor of {new}')
            return _reject(refspec, 'REMOTE_HAS_CHANGES',
                           f'{old} is not an ancestor of {new}')
        have_objects = set(base.iter_objects_in_commits({old}, shallow=shallow))

    missing = list(base.iter_objects_in_commits({new}, exclude=have_objects, shallow=shallow))

    for oid in shallow.intersection(missing):
        # a shallow commit would arrive with parents the remote cannot resolve
        lacking = [parent for parent in base.get_commit(oid).parents
                   if not transport.has_object(parent)]
        if lacking:
            return _reject(refspec, 'HISTORY_TOO_SHALLOW',
                           f'parents of {oid} are neither here nor at the remote')

    logger.info('%s: %s -> %s, %d objects missing', refspec.destination,
                old or '(new)', new, len(missing))
    return FastForward(refspec, old, new, missing)


def _reject(refspec, code: types.StatusCode, detail) -> Rejected:
    logger.warning('push of %s rejected (%s): %s', refspec, code, detail)
    return Rejected(refspec, code, detail)
