import os

import pytest

from geovc import base, data
from geovc.types import RefValue


@pytest.fixture
def make_repo(tmp_path):
    def make(name):
        path = tmp_path / name
        path.mkdir()
        with data.change_git_dir(str(path)):
            base.init()
        return str(path)
    return make


@pytest.fixture
def remote_repo(make_repo):
    return make_repo('remote')


@pytest.fixture
def local_repo(make_repo):
    """A fresh repository that is the current one for the whole test."""
    path = make_repo('local')
    with data.change_git_dir(path):
        yield path


def make_commit(message, parents=(), values=None):
    """Commits a small tree in the current repository."""
    if values is None:
        values = {f'roads/{message}': f'LINESTRING ({message})',
                  'meta/schema': 'id:int, geom:LineString'}
    tree = base.write_tree({path: data.hash_object(content.encode())
                            for path, content in values.items()})
    return base.commit_tree(tree, parents, message, author='tester', timestamp=1700000000)


def make_history(count, parent=None, prefix='C'):
    """Returns a linear chain of commits, oldest first."""
    oids = []
    for i in range(1, count + 1):
        parents = [parent] if parent else []
        parent = make_commit(f'{prefix}{i}', parents)
        oids.append(parent)
    return oids


def copy_history(tip, remote_path):
    for oid in base.iter_objects_in_commits({tip}):
        data.push_object(oid, remote_path)


def set_remote_ref(remote_path, name, oid):
    with data.change_git_dir(remote_path):
        data.update_ref(name, RefValue(symbolic=False, value=oid))


def get_remote_ref(remote_path, name):
    with data.change_git_dir(remote_path):
        return data.get_ref(name, deref=False)


def stored_objects(repo_path):
    return set(os.listdir(f'{repo_path}/{data.DIR_NAME}/objects'))


def reachable(tip):
    return set(base.iter_objects_in_commits({tip}))
