import hashlib
import json
import logging
import os
from contextlib import contextmanager
from typing import Iterable

from geovc import errors
from geovc import types
from geovc.types import RefValue

logger = logging.getLogger(__name__)

GIT_DIR: str | None = None
DIR_NAME = '.geovc'


@contextmanager
def change_git_dir(new_dir):
    global GIT_DIR
    old_dir = GIT_DIR
    GIT_DIR = f'{new_dir}/{DIR_NAME}'
    try:
        yield
    finally:
        GIT_DIR = old_dir


def init():
    assert GIT_DIR is not None
    os.makedirs(GIT_DIR, exist_ok=True)
    os.makedirs(f'{GIT_DIR}/objects', exist_ok=True)


def is_repository(path) -> bool:
    return os.path.isdir(f'{path}/{DIR_NAME}/objects')


def hash_object(data: bytes, type_: types.ObjectType = 'value') -> types.OID:
    obj = type_.encode() + b'\x00' + data
    oid = hashlib.sha1(obj).hexdigest()
    if not object_exists(oid):
        _write_atomic(f'{GIT_DIR}/objects/{oid}', obj)
    return oid


def get_object(oid: types.OID, expected: types.ObjectType | None = 'value') -> bytes:
    type_, content = _read_object(oid)
    if expected is not None:
        assert type_ == expected, f'Expected {expected}, got {type_}'
    return content


def get_object_type(oid: types.OID) -> types.ObjectType:
    return _read_object(oid)[0]


def _read_object(oid):
    try:
        with open(f'{GIT_DIR}/objects/{oid}', 'rb') as f:
            obj = f.read()
    except FileNotFoundError:
        raise errors.ObjectNotFound(oid) from None

    type_, _, content = obj.partition(b'\x00')
    return type_.decode(), content


def object_exists(oid: types.OID) -> bool:
    return os.path.isfile(f'{GIT_DIR}/objects/{oid}')


def copy_object(oid: types.OID, source_dir, target_dir):
    """Copy one object between two repositories, never exposing a partial file."""
    with open(f'{source_dir}/{DIR_NAME}/objects/{oid}', 'rb') as f:
        obj = f.read()
    _write_atomic(f'{target_dir}/{DIR_NAME}/objects/{oid}', obj)


def push_object(oid: types.OID, remote_path):
    copy_object(oid, os.path.dirname(GIT_DIR), remote_path)


def fetch_object_if_missing(oid: types.OID, remote_path):
    if object_exists(oid):
        return False
    copy_object(oid, remote_path, os.path.dirname(GIT_DIR))
    return True


def _write_atomic(path, content: bytes):
    tmp_path = f'{path}.tmp{os.getpid()}'
    with open(tmp_path, 'wb') as out:
        out.write(content)
    os.replace(tmp_path, path)


@contextmanager
def _locked_ref(ref):
    """Holds <ref>.lock; yields None if another writer already holds it."""
    ref_path = f'{GIT_DIR}/{ref}'
    lock_path = f'{ref_path}.lock'
    os.makedirs(os.path.dirname(ref_path), exist_ok=True)
    try:
        fd = os.open(lock_path, os.O_CREAT | os.O_EXCL | os.O_WRONLY)
    except FileExistsError:
        yield None
        return

    try:
        with os.fdopen(fd, 'w') as lock:
            yield lock
        if os.path.exists(lock_path):
            os.replace(lock_path, ref_path)
    finally:
        if os.path.exists(lock_path):
            os.remove(lock_path)


def _encode_ref(value: RefValue) -> str:
    assert value.value
    if value.symbolic:
        return f'ref: {value.value}'
    return value.value


def update_ref(ref, value: RefValue, deref=True):
    ref = _get_ref_internal(ref, deref)[0]
    with _locked_ref(ref) as lock:
        if lock is None:
            raise errors.RefLocked(ref)
        lock.write(_encode_ref(value))


def compare_and_set_ref(ref, expected: types.OID | None, new: types.OID) -> bool:
    """Point `ref` at `new` only if it currently holds `expected` (None: absent).

    Symbolic refs are never followed or replaced. Returns False on any
    mismatch, including a lock held by a concurrent writer.
    """
    if not object_exists(new):
        raise errors.ObjectNotFound(new)

    with _locked_ref(ref) as lock:
        if lock is None:
            logger.debug('%s is locked by another writer', ref)
            return False
        current = get_ref(ref, deref=False)
        if current.symbolic or current.value != expected:
            logger.debug('%s moved: expected %s, found %s', ref, expected, current.value)
            # drop the lock without replacing the ref
            lock.close()
            os.remove(f'{GIT_DIR}/{ref}.lock')
            return False
        lock.write(new)
    return True


def get_ref(ref, deref=True) -> RefValue:
    return _get_ref_internal(ref, deref)[1]


def _get_ref_internal(ref: str, deref: bool) -> tuple[str, RefValue]:
    ref_path = f'{GIT_DIR}/{ref}'
    value = None
    if os.path.isfile(ref_path):
        with open(ref_path) as f:
            value = f.read().strip()

    symbolic = bool(value) and value.startswith('ref:')
    if symbolic:
        value = value.split(':', 1)[1].strip()
        if deref:
            return _get_ref_internal(value, deref=True)
    return ref, RefValue(symbolic=symbolic, value=value)


def iter_refs(prefix='', deref=True) -> Iterable[tuple[str, types.RefValue]]:
    refs = ['HEAD']
    for root, _, filenames in os.walk(f'{GIT_DIR}/refs/'):
        root = os.path.relpath(root, GIT_DIR).replace('\\', '/')
        refs.extend(f'{root}/{name}' for name in filenames
                    if not name.endswith('.lock'))

    for refname in refs:
        if not refname.startswith(prefix):
            continue
        ref = get_ref(refname, deref=deref)
        if ref.value:
            yield refname, ref


@contextmanager
def get_index():
    index = _load_json('index')
    yield index
    _write_atomic(f'{GIT_DIR}/index', json.dumps(index).encode())


@contextmanager
def get_config():
    config = _load_json('config')
    yield config
    _write_atomic(f'{GIT_DIR}/config', json.dumps(config, indent=2).encode())


def read_config() -> dict:
    return _load_json('config')


def _load_json(name) -> dict:
    path = f'{GIT_DIR}/{name}'
    if not os.path.isfile(path):
        return {}
    with open(path) as f:
        return json.load(f)


def get_shallow() -> set[types.OID]:
    path = f'{GIT_DIR}/shallow'
    if not os.path.isfile(path):
        return set()
    with open(path) as f:
        return {line.strip() for line in f if line.strip()}


def set_shallow(oids: Iterable[types.OID]):
    oids = sorted(set(oids))
    path = f'{GIT_DIR}/shallow'
    if not oids:
        if os.path.exists(path):
            os.remove(path)
        return
    _write_atomic(path, ''.join(f'{oid}\n' for oid in oids).encode())
