"""Shared fixtures: a replaying HTTP session and an isolated configuration."""

import pytest

from remote_models.config import Config
from remote_models.fetcher import RemoteFetcher
from remote_models.ingest import IngestPipeline
from remote_models.resolver import CacheResolver

from .helpers import FakeSession


@pytest.fixture
def config(tmp_path):
    cache_dir = tmp_path / 'cache'
    cache_dir.mkdir()

    class TestConfig(Config):
        DOMAIN = 'https://yourdomain.com/'
        API_PATH = '/api/_remote/_models'
        API_KEY = 'secret'
        TRANSPORT = 'get'
        CACHE_PATH = str(cache_dir)
        CACHE_PREFIX = 'remote'
        CACHE_TTL = 0
        HOST_MODELS = []
        MODELS = []

    return TestConfig


@pytest.fixture
def session():
    return FakeSession()


@pytest.fixture
def fetcher(config, session):
    return RemoteFetcher(config=config, session=session)


@pytest.fixture
def pipeline(fetcher):
    return IngestPipeline(fetcher)


@pytest.fixture
def make_resolver(config):
    """Build a resolver over its own session, like a fresh process."""

    def factory(session=None, resolver_config=None):
        resolver_config = resolver_config or config
        session = session if session is not None else FakeSession()
        return CacheResolver(config=resolver_config, fetcher=RemoteFetcher(resolver_config, session=session))

    return factory
