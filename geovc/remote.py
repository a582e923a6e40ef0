import logging
import os
from typing import Iterable

from . import base
from . import data
from . import errors
from . import types
from .types import RefValue

logger = logging.getLogger(__name__)

REMOTE_REFS_BASE = 'refs/heads/'
LOCAL_REFS_BASE = 'refs/remote/'


def add_remote(name, url):
    if not data.is_repository(url):
        logger.warning('%s does not look like a repository yet', url)
    with data.get_config() as config:
        config.setdefault('remote', {})[name] = {'url': os.path.abspath(url)}


def get_remote_url(name):
    return data.read_config().get('remote', {}).get(name, {}).get('url')


def iter_remote_names():
    yield from data.read_config().get('remote', {})


class Transport:
    """Access to a repository on the local filesystem.

    Exposes the primitives a push or fetch needs: reading refs, testing
    and sending objects, and an atomic compare-and-set of a ref.
    """

    def __init__(self, name, path):
        self.name = name
        self.path = path

    def __repr__(self):
        return f'Transport({self.name!r}, {self.path!r})'

    @property
    def is_named(self):
        return self.name != self.path

    def list_refs(self, prefix='') -> dict[types.RefName, RefValue]:
        with self.session():
            return dict(data.iter_refs(prefix, deref=False))

    def read_ref(self, name) -> RefValue:
        with self.session():
            return data.get_ref(name, deref=False)

    def has_object(self, oid) -> bool:
        with self.session():
            return data.object_exists(oid)

    def send_objects(self, oids: Iterable[types.OID]) -> int:
        """Copies objects from the current repository, in the given order."""
        sent = 0
        for oid in oids:
            if self.has_object(oid):
                continue
            try:
                data.push_object(oid, self.path)
            except OSError as e:
                raise errors.TransportError(f'failed to send {oid} to {self.name}: {e}') from e
            sent += 1
        return sent

    def fetch_objects(self, oids: Iterable[types.OID]) -> int:
        fetched = 0
        for oid in oids:
            try:
                fetched += data.fetch_object_if_missing(oid, self.path)
            except OSError as e:
                raise errors.TransportError(f'failed to fetch {oid} from {self.name}: {e}') from e
        return fetched

    def compare_and_set(self, name, expected: types.OID | None, new: types.OID) -> bool:
        with self.session():
            try:
                return data.compare_and_set_ref(name, expected, new)
            except OSError as e:
                raise errors.TransportError(f'failed to update {name} on {self.name}: {e}') from e

    def session(self):
        """Makes the remote repository the current one."""
        return data.change_git_dir(self.path)


def open_transport(remote) -> Transport:
    """Finds a remote by configured name, or by repository path."""
    if url := get_remote_url(remote):
        name, path = remote, url
    else:
        name = path = os.path.abspath(remote)
    if not data.is_repository(path):
        raise errors.UnknownRemote(remote)
    return Transport(name, path)


def fetch(remote, depth=None):
    transport = open_transport(remote)
    refs = {name: ref.value for name, ref in transport.list_refs(REMOTE_REFS_BASE).items()
            if not ref.symbolic}

    with transport.session():
        if depth is None:
            wanted = list(base.iter_objects_in_commits(refs.values()))
            # history the remote itself lacks stays shallow here too
            cut = data.get_shallow() & set(wanted)
        else:
            commits, cut = base.walk_to_depth(refs.values(), depth)
            wanted = list(base.iter_objects_in_commits(commits, shallow=set(commits)))

    fetched = transport.fetch_objects(wanted)
    logger.info('fetched %d objects from %s', fetched, transport.name)
    _update_shallow(cut)

    for remote_name, value in refs.items():
        update_tracking_ref(transport, remote_name, value)
    return refs


def _update_shallow(cut):
    shallow = data.get_shallow() | set(cut)
    still_shallow = set()
    for oid in shallow:
        parents = base.get_commit(oid).parents
        if not all(data.object_exists(parent) for parent in parents):
            still_shallow.add(oid)
    data.set_shallow(still_shallow)


def update_tracking_ref(transport: Transport, refname, oid):
    if not transport.is_named or not refname.startswith(REMOTE_REFS_BASE):
        return
    branch = os.path.relpath(refname, REMOTE_REFS_BASE)
    try:
        data.update_ref(f'{LOCAL_REFS_BASE}{transport.name}/{branch}',
                        RefValue(symbolic=False, value=oid))
    except errors.RefLocked as e:
        logger.warning('%s; remote-tracking ref not moved', e)
