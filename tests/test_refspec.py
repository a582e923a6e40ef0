import pytest

from geovc import base, data, errors, refspec, remote
from geovc.types import RefSpec, RefValue

from conftest import make_commit


@pytest.fixture
def branches(local_repo):
    oid = make_commit('C1')
    base.create_branch('main', oid)
    base.create_branch('survey', oid)
    base.create_tag('v1', oid)
    return oid


def test_destination_defaults_to_source(branches):
    assert refspec.parse('main') == RefSpec('refs/heads/main', 'refs/heads/main')


def test_explicit_destination(branches):
    assert refspec.parse('main:release') == RefSpec('refs/heads/main', 'refs/heads/release')
    assert refspec.parse('refs/heads/main:refs/heads/x') == RefSpec('refs/heads/main', 'refs/heads/x')
    assert refspec.parse('v1:v1-final') == RefSpec('refs/tags/v1', 'refs/tags/v1-final')


def test_symbolic_source_is_followed(branches):
    assert refspec.parse('HEAD') == RefSpec('refs/heads/main', 'refs/heads/main')
    assert refspec.parse('HEAD:HEAD') == RefSpec('refs/heads/main', 'HEAD')


@pytest.mark.parametrize('text', [
    'nope',
    ':refs/heads/main',
    '+main',
    'main:a:b',
    'main:',
    'main:bad name',
    'main:refs/heads/../x',
    'main:topic.lock',
])
def test_invalid_refspecs(branches, text):
    with pytest.raises(errors.InvalidRefSpec):
        refspec.parse(text)


def test_head_of_unborn_branch_is_invalid(local_repo):
    with pytest.raises(errors.InvalidRefSpec):
        refspec.parse('HEAD')


def test_explicit_refspecs_keep_order(branches):
    _, specs = refspec.resolve('origin', ['survey', 'main:trunk'])
    assert specs == [RefSpec('refs/heads/survey', 'refs/heads/survey'),
                     RefSpec('refs/heads/main', 'refs/heads/trunk')]


def test_duplicate_destination_is_invalid(branches):
    with pytest.raises(errors.InvalidRefSpec):
        refspec.resolve('origin', ['main:trunk', 'survey:trunk'])


def test_all_ignores_explicit_refspecs(branches):
    data.update_ref('refs/heads/alias', RefValue(symbolic=True, value='refs/heads/main'), deref=False)
    _, specs = refspec.resolve('origin', ['v1'], all_=True)
    assert sorted(specs) == [RefSpec('refs/heads/main', 'refs/heads/main'),
                             RefSpec('refs/heads/survey', 'refs/heads/survey')]


def test_upstream_mapping(branches):
    base.set_upstream('main', 'origin', 'refs/heads/trunk')
    assert refspec.resolve() == ('origin', [RefSpec('refs/heads/main', 'refs/heads/trunk')])


def test_no_upstream(branches):
    with pytest.raises(errors.NoUpstreamConfigured):
        refspec.resolve('origin')


def test_no_remote_and_no_upstream(branches):
    with pytest.raises(errors.NoUpstreamConfigured):
        refspec.resolve(all_=True)


def test_origin_is_the_default_remote(branches, remote_repo):
    remote.add_remote('origin', remote_repo)
    assert refspec.resolve(None, all_=True)[0] == 'origin'
