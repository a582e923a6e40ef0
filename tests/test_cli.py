import os

import pytest

from geovc.cli import main


def run(args, cwd):
    old = os.getcwd()
    try:
        os.chdir(cwd)
        return main(args)
    finally:
        os.chdir(old)


def commit_file(repo, name, content, message):
    (repo / name).write_text(content)
    assert run(['add', name], repo) == 0
    assert run(['commit', '-m', message], repo) == 0


@pytest.fixture
def repos(tmp_path):
    remote, local = tmp_path / 'remote', tmp_path / 'local'
    for path in (remote, local):
        path.mkdir()
        assert run(['init'], path) == 0
    assert run(['remote', 'add', 'origin', str(remote)], local) == 0
    return remote, local


def test_push_then_nothing_to_push(repos, capsys):
    remote, local = repos
    commit_file(local, 'roads.csv', 'id,geom\n1,LINESTRING (0 0, 1 1)\n', 'import roads')

    assert run(['push', 'origin', 'main'], local) == 0
    assert 'Nothing to push.' not in capsys.readouterr().out

    assert run(['push', 'origin', 'main'], local) == 0
    assert 'Nothing to push.' in capsys.readouterr().out


def test_push_all(repos, capsys):
    remote, local = repos
    commit_file(local, 'roads.csv', 'id\n1\n', 'import roads')
    assert run(['branch', 'survey'], local) == 0

    assert run(['push', '--all'], local) == 0
    assert run(['push', '--all', 'origin'], local) == 0
    assert 'Nothing to push.' in capsys.readouterr().out


def test_push_divergent(repos, capsys):
    remote, local = repos
    commit_file(remote, 'roads.csv', 'id\n1\n', 'remote edit')
    commit_file(local, 'roads.csv', 'id\n2\n', 'local edit')

    assert run(['push', 'origin', 'main'], local) == 1
    assert ('Push failed: The remote repository has changes that would be lost '
            'in the event of a push.') in capsys.readouterr().err


def test_push_to_symbolic_ref(repos, capsys):
    remote, local = repos
    commit_file(local, 'roads.csv', 'id\n1\n', 'import roads')

    assert run(['push', 'origin', 'main:HEAD'], local) == 1
    assert 'Push failed: Cannot push to a symbolic reference' in capsys.readouterr().err


def test_push_from_shallow_fetch(repos, capsys):
    remote, local = repos
    commit_file(remote, 'roads.csv', 'id\n1\n', 'C1')
    assert run(['branch', 'base'], remote) == 0
    commit_file(remote, 'roads.csv', 'id\n2\n', 'C2')
    commit_file(remote, 'roads.csv', 'id\n3\n', 'C3')

    assert run(['fetch', '--depth', '1', 'origin'], local) == 0
    assert run(['branch', 'main', 'refs/remote/origin/main'], local) == 0
    commit_file(local, 'roads.csv', 'id\n4\n', 'C4')

    assert run(['push', 'origin', 'main:base'], local) == 1
    assert ('Push failed: There is not enough local history to complete the push.'
            in capsys.readouterr().err)


def test_push_to_upstream(repos, capsys):
    remote, local = repos
    commit_file(local, 'roads.csv', 'id\n1\n', 'import roads')
    assert run(['branch', '--set-upstream-to', 'origin/trunk'], local) == 0

    assert run(['push'], local) == 0
    assert (remote / '.geovc' / 'refs' / 'heads' / 'trunk').is_file()


def test_push_without_upstream(tmp_path, capsys):
    assert run(['init'], tmp_path) == 0
    commit_file(tmp_path, 'roads.csv', 'id\n1\n', 'import roads')

    assert run(['push'], tmp_path) == 1
    assert "error: branch 'main' has no upstream configured" in capsys.readouterr().err


def test_push_invalid_refspec(repos, capsys):
    remote, local = repos
    commit_file(local, 'roads.csv', 'id\n1\n', 'import roads')

    assert run(['push', 'origin', ':main'], local) == 1
    assert 'invalid refspec' in capsys.readouterr().err
    assert not (remote / '.geovc' / 'refs' / 'heads' / 'main').exists()


def test_log(repos, capsys):
    remote, local = repos
    commit_file(local, 'roads.csv', 'id\n1\n', 'first')
    commit_file(local, 'roads.csv', 'id\n2\n', 'second')

    assert run(['log'], local) == 0
    out = capsys.readouterr().out
    assert out.index('second') < out.index('first')


def test_init_reports_absolute_path(tmp_path, capsys):
    assert run(['init'], tmp_path) == 0
    out = capsys.readouterr().out
    assert out.strip() == f'Initialized empty geovc repository in {tmp_path / ".geovc"}'


def test_push_onto_clashing_ref_path(repos, capsys):
    remote, local = repos
    commit_file(local, 'roads.csv', 'id\n1\n', 'import roads')
    assert run(['push', 'origin', 'main:a'], local) == 0
    assert run(['branch', 'a/b'], local) == 0
    capsys.readouterr()

    assert run(['push', 'origin', 'a/b'], local) == 1
    assert 'error: failed to update refs/heads/a/b on origin' in capsys.readouterr().err
    assert (remote / '.geovc' / 'refs' / 'heads' / 'a').is_file()
