import itertools
import operator
import os
import string
import time
from collections import deque
from typing import Iterable

from . import data
from . import types
from .types import RefValue

HEADS = 'refs/heads/'
TAGS = 'refs/tags/'


def init():
    data.init()
    data.update_ref('HEAD', RefValue(symbolic=True, value=f'{HEADS}main'), deref=False)


def get_branch_name():
    HEAD = data.get_ref('HEAD', deref=False)
    if not HEAD.symbolic:
        return None
    HEAD = HEAD.value
    assert HEAD.startswith(HEADS), f'expected HEAD to start with "{HEADS}", found {HEAD}'
    return os.path.relpath(HEAD, HEADS)


def iter_branch_names():
    for refname, _ in data.iter_refs(HEADS):
        yield os.path.relpath(refname, HEADS)


def create_branch(name, oid):
    data.update_ref(f'{HEADS}{name}', RefValue(symbolic=False, value=oid))


def create_tag(name, oid):
    data.update_ref(f'{TAGS}{name}', RefValue(symbolic=False, value=oid))


def set_upstream(branch, remote, merge_ref):
    with data.get_config() as config:
        config.setdefault('branch', {})[branch] = {'remote': remote, 'merge': merge_ref}


def get_upstream(branch) -> tuple[str, types.RefName] | None:
    entry = data.read_config().get('branch', {}).get(branch)
    if not entry:
        return None
    return entry['remote'], entry['merge']


def get_author():
    user = data.read_config().get('user', {})
    return user.get('name') or os.environ.get('USER') or 'unknown'


def get_commit(oid: types.OID) -> types.Commit:
    parents = []
    tree = None
    author, timestamp = 'unknown', 0
    commit_ = data.get_object(oid, 'commit').decode()
    lines = iter(commit_.splitlines())
    # headers end at the first empty line, the message follows
    for line in itertools.takewhile(operator.truth, lines):
        key, value = line.split(' ', 1)
        if key == 'tree':
            tree = value
        elif key == 'parent':
            parents.append(value)
        elif key == 'author':
            author, timestamp = value.rsplit(' ', 1)
            timestamp = int(timestamp)
        else:
            raise AssertionError(f'Unknown field {key}')

    assert tree is not None, 'Expected tree to be defined'
    message = '\n'.join(lines)
    return types.Commit(tree=tree, parents=parents, author=author,
                        timestamp=timestamp, message=message)


def write_tree(tree_map: types.TreeMap | None = None) -> types.OID:
    """Writes nested tree objects for a flat path -> value OID mapping.

    Without a mapping the staged index is written.
    """
    if tree_map is None:
        with data.get_index() as index:
            tree_map = dict(index)

    as_tree = {}
    for path, oid in tree_map.items():
        path = path.split('/')
        dirpath, filename = path[:-1], path[-1]
        current = as_tree
        for dirname in dirpath:
            current = current.setdefault(dirname, {})
        current[filename] = oid

    def write_tree_recursive(tree_dict):
        entries = []
        for name, value in tree_dict.items():
            if type(value) is dict:
                type_ = 'tree'
                oid = write_tree_recursive(value)
            else:
                type_ = 'value'
                oid = value
            entries.append((name, oid, type_))

        tree = ''.join(f'{type_} {oid} {name}\n'
                       for name, oid, type_
                       in sorted(entries))
        return data.hash_object(tree.encode(), 'tree')

    return write_tree_recursive(as_tree)


def _iter_tree_entries(oid):
    if not oid:
        return
    tree = data.get_object(oid, 'tree')
    for entry in tree.decode().splitlines():
        type_, oid, name = entry.split(' ', 2)
        yield type_, oid, name


def commit_tree(tree: types.OID, parents: Iterable[types.OID], message: str,
                author: str | None = None, timestamp: int | None = None) -> types.OID:
    commit_ = f'tree {tree}\n'
    for parent in parents:
        commit_ += f'parent {parent}\n'
    if author is None:
        author = get_author()
    if timestamp is None:
        timestamp = int(time.time())
    commit_ += f'author {author} {timestamp}\n'
    commit_ += '\n'
    commit_ += f'{message}\n'
    return data.hash_object(commit_.encode(), 'commit')


def commit(message):
    HEAD = data.get_ref('HEAD').value
    parents = [HEAD] if HEAD else []
    oid = commit_tree(write_tree(), parents, message)
    data.update_ref('HEAD', RefValue(symbolic=False, value=oid))
    return oid


def get_oid(name):
    if name == '@':
        name = 'HEAD'

    refs_to_try = [
        f'{name}',
        f'refs/{name}',
        f'{TAGS}{name}',
        f'{HEADS}{name}'
    ]
    for ref in refs_to_try:
        if oid := data.get_ref(ref).value:
            return oid

    is_hex = all(c in string.hexdigits for c in name)
    if len(name) == 40 and is_hex:
        return name

    raise AssertionError(f'Unknown name {name}')


def iter_commits_and_parents(oids, shallow=None):
    """Breadth-first walk over commits; parents of shallow commits are not followed."""
    if shallow is None:
        shallow = data.get_shallow()
    oids = deque(oids)
    visited = set()

    while oids:
        oid = oids.popleft()
        if not oid or oid in visited:
            continue
        visited.add(oid)
        yield oid

        if oid in shallow:
            continue
        commit_ = get_commit(oid)
        oids.extendleft(commit_.parents[:1])
        oids.extend(commit_.parents[1:])


def iter_commits_in_dependency_order(oids, exclude=frozenset(), shallow=None):
    """Yields commits reachable from `oids`, every parent before its children.

    Commits in `exclude` are treated as already present and not walked past.
    """
    if shallow is None:
        shallow = data.get_shallow()
    visited = set(exclude)
    stack = [(oid, False) for oid in oids]

    while stack:
        oid, expanded = stack.pop()
        if expanded:
            yield oid
            continue
        if not oid or oid in visited:
            continue
        visited.add(oid)
        stack.append((oid, True))
        if oid in shallow:
            continue
        for parent in reversed(get_commit(oid).parents):
            if parent not in visited:
                stack.append((parent, False))


def iter_objects_in_commits(oids, exclude=frozenset(), shallow=None):
    """Yields every object reachable from `oids` not in `exclude`.

    An object is only yielded after every object it references.
    """
    visited = set(exclude)

    def iter_objects_in_tree(tree_oid):
        visited.add(tree_oid)
        for type_, oid_, _ in _iter_tree_entries(tree_oid):
            if oid_ in visited:
                continue
            if type_ == 'tree':
                yield from iter_objects_in_tree(oid_)
            else:
                visited.add(oid_)
                yield oid_
        yield tree_oid

    for oid in iter_commits_in_dependency_order(oids, exclude, shallow):
        commit_ = get_commit(oid)
        if commit_.tree not in visited:
            yield from iter_objects_in_tree(commit_.tree)
        yield oid


def walk_to_depth(oids, depth: int) -> tuple[list[types.OID], set[types.OID]]:
    """Returns commits within `depth` generations of `oids`, and the cut commits.

    The cut commits are those whose parents lie beyond the limit.
    """
    assert depth > 0
    shallow = data.get_shallow()
    commits = []
    cut = set()
    visited = set()
    queue = deque((oid, 1) for oid in oids)

    while queue:
        oid, level = queue.popleft()
        if oid in visited:
            continue
        visited.add(oid)
        commits.append(oid)
        parents = [] if oid in shallow else get_commit(oid).parents
        if level >= depth or oid in shallow:
            if parents or oid in shallow:
                cut.add(oid)
            continue
        queue.extend((parent, level + 1) for parent in parents)

    return commits, cut


def add(filenames):
    def add_file(filename):
        filename = os.path.relpath(filename).replace('\\', '/')
        with open(filename, 'rb') as f:
            oid = data.hash_object(f.read())
        index[filename] = oid

    def add_directory(dirname):
        for root, _, filenames_inner in os.walk(dirname):
            for filename_inner in filenames_inner:
                path = os.path.relpath(f'{root}/{filename_inner}').replace('\\', '/')
                if is_ignored(path) or not os.path.isfile(path):
                    continue
                add_file(path)

    with data.get_index() as index:
        for name in filenames:
            if os.path.isfile(name):
                add_file(name)
            elif os.path.isdir(name):
                add_directory(name)


def is_ignored(path):
    parts = path.replace('\\', '/').split('/')
    return any(part in parts for part in (data.DIR_NAME, '__pycache__', '.git'))
