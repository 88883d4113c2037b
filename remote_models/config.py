import os
from datetime import timedelta
from importlib import import_module
from pathlib import Path
from dotenv import load_dotenv

load_dotenv()


def _default_cache_path() -> str:
    base = os.getenv('XDG_CACHE_HOME') or str(Path.home() / '.cache')
    return str(Path(base) / 'remote-models')


def _split_list(value: str) -> list:
    return [item.strip() for item in value.split(',') if item.strip()]


class Config:
    DEBUG = os.getenv('DEBUG', 'False').lower() == 'true'

    # Remote source
    DOMAIN = os.getenv('REMOTE_MODELS_DOMAIN', '')
    API_PATH = os.getenv('REMOTE_MODELS_API_PATH', '/api/_remote/_models')
    API_KEY = os.getenv('REMOTE_MODELS_API_KEY', '')

    # 'get' sends ?page=N, 'post' also sends the model name and api key in the body
    TRANSPORT = os.getenv('REMOTE_MODELS_TRANSPORT', 'get').lower()
    REQUEST_TIMEOUT = 10

    # Local cache files
    CACHE_PATH = os.getenv('REMOTE_MODELS_CACHE_PATH', _default_cache_path())
    CACHE_PREFIX = os.getenv('REMOTE_MODELS_CACHE_PREFIX', 'remote')

    # Seconds; 0 disables TTL tracking and falls back to mtime comparison
    CACHE_TTL = int(os.getenv('REMOTE_MODELS_CACHE_TTL', '0') or 0)

    # Entities served by this host, as "package.module:ClassName"
    HOST_MODELS = _split_list(os.getenv('REMOTE_MODELS_HOST_MODELS', ''))

    # Entities pre-warmed by the refresh_cache script
    MODELS = _split_list(os.getenv('REMOTE_MODELS_MODELS', ''))

    @classmethod
    def cache_ttl(cls):
        """Return the TTL as a timedelta, or None when TTL tracking is disabled."""
        if cls.CACHE_TTL and cls.CACHE_TTL > 0:
            return timedelta(seconds=cls.CACHE_TTL)
        return None


def import_entity(reference: str):
    """
    Import an entity type from a "module:ClassName" or "module.ClassName" reference.

    Raises:
        ImportError: if the module or attribute cannot be found
    """
    if ':' in reference:
        module_name, attr = reference.split(':', 1)
    else:
        module_name, _, attr = reference.rpartition('.')

    if not module_name or not attr:
        raise ImportError(f"Invalid entity reference: {reference!r}")

    module = import_module(module_name)
    try:
        return getattr(module, attr)
    except AttributeError:
        raise ImportError(f"{module_name} has no attribute {attr!r}") from None
