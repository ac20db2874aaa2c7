from .blob_cache_repository import BlobCacheRepository
from .config_repository import ConfigRepository
from .image_repository import ImageRepository
from .instance_repository import InstanceRepository

__all__ = [
    'BlobCacheRepository',
    'ConfigRepository',
    'ImageRepository',
    'InstanceRepository',
]
