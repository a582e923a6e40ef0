import argparse
import logging
import os
import sys
import textwrap

from typing_extensions import assert_never

from . import base
from . import data
from . import errors
from . import push as push_
from . import remote
from . import types
from .progress import ConsoleProgressListener


def main(argv=None):
    with data.change_git_dir('.'):
        args = parse_args(argv)
        logging.basicConfig(
            level=logging.DEBUG if args.verbose else logging.WARNING,
            format='%(levelname)s %(name)s: %(message)s',
        )
        try:
            return args.func(args) or 0
        except errors.GeovcError as e:
            print(f'error: {e}', file=sys.stderr)
            return 1


def parse_args(argv=None):
    parser = argparse.ArgumentParser(prog='geovc')
    parser.add_argument('-v', '--verbose', action='store_true')
    commands = parser.add_subparsers(dest='command')
    commands.required = True

    oid = base.get_oid

    init_parser = commands.add_parser('init')
    init_parser.set_defaults(func=init)

    add_parser = commands.add_parser('add')
    add_parser.set_defaults(func=add)
    add_parser.add_argument('files', nargs='+')

    commit_parser = commands.add_parser('commit')
    commit_parser.set_defaults(func=commit)
    commit_parser.add_argument('-m', '--message', required=True)

    log_parser = commands.add_parser('log')
    log_parser.set_defaults(func=log)
    log_parser.add_argument('oid', default='@', type=oid, nargs='?')

    branch_parser = commands.add_parser('branch')
    branch_parser.set_defaults(func=branch)
    branch_parser.add_argument('name', nargs='?')
    branch_parser.add_argument('start_point', type=oid, nargs='?')
    branch_parser.add_argument('-u', '--set-upstream-to', metavar='REMOTE/BRANCH')

    tag_parser = commands.add_parser('tag')
    tag_parser.set_defaults(func=tag)
    tag_parser.add_argument('name')
    tag_parser.add_argument('oid', default='@', type=oid, nargs='?')

    remote_parser = commands.add_parser('remote')
    remote_commands = remote_parser.add_subparsers(dest='remote_command')
    remote_commands.required = True
    remote_add_parser = remote_commands.add_parser('add')
    remote_add_parser.set_defaults(func=remote_add)
    remote_add_parser.add_argument('name')
    remote_add_parser.add_argument('url')

    fetch_parser = commands.add_parser('fetch')
    fetch_parser.set_defaults(func=fetch)
    fetch_parser.add_argument('remote', default='origin', nargs='?')
    fetch_parser.add_argument('--depth', type=int)

    push_parser = commands.add_parser('push')
    push_parser.set_defaults(func=push)
    push_parser.add_argument('--all', action='store_true',
                             help='push all refs under refs/heads/ instead of naming each one')
    push_parser.add_argument('args', nargs='*', metavar='<repository> [<refspec>...]')

    return parser.parse_args(argv)


def init(args):
    base.init()
    print(f'Initialized empty geovc repository in {os.path.abspath(data.GIT_DIR)}')


def add(args):
    base.add(args.files)


def commit(args):
    print(base.commit(args.message))


def log(args):
    for oid in base.iter_commits_and_parents({args.oid}):
        commit_ = base.get_commit(oid)
        print(f'commit {oid}')
        print(f'Author: {commit_.author}\n')
        print(textwrap.indent(commit_.message, '    '))
        print('')


def branch(args):
    if args.set_upstream_to:
        remote_name, _, upstream = args.set_upstream_to.partition('/')
        name = args.name or base.get_branch_name()
        if not upstream or name is None:
            print(f'error: cannot set upstream to {args.set_upstream_to!r}', file=sys.stderr)
            return 1
        base.set_upstream(name, remote_name, f'{base.HEADS}{upstream}')
        return

    if not args.name:
        current = base.get_branch_name()
        for name in sorted(base.iter_branch_names()):
            prefix = '*' if name == current else ' '
            print(f'{prefix} {name}')
        return

    start_point = args.start_point or base.get_oid('@')
    base.create_branch(args.name, start_point)
    print(f'Branch {args.name} created at {start_point[:10]}')


def tag(args):
    base.create_tag(args.name, args.oid)


def remote_add(args):
    remote.add_remote(args.name, args.url)


def fetch(args):
    refs = remote.fetch(args.remote, depth=args.depth)
    for refname, oid in refs.items():
        print(f'{oid[:10]} {refname}')


def push(args):
    repository, refspecs = None, []
    if args.args:
        repository, *refspecs = args.args

    result = push_.push(repository, refspecs, all_=args.all,
                        progress=ConsoleProgressListener())
    if result.rejection is not None:
        print(rejection_message(result.rejection.code), file=sys.stderr)
        return 1
    if not result.data_pushed:
        print('Nothing to push.')


def rejection_message(code: types.StatusCode) -> str:
    if code == 'REMOTE_HAS_CHANGES':
        return 'Push failed: The remote repository has changes that would be lost in the event of a push.'
    elif code == 'HISTORY_TOO_SHALLOW':
        return 'Push failed: There is not enough local history to complete the push.'
    elif code == 'CANNOT_PUSH_TO_SYMBOLIC_REF':
        return 'Push failed: Cannot push to a symbolic reference'
    else:
        assert_never(code)
