from .base import RandomnessClient
from .http_api import HttpRandomnessClient, HttpRandomnessClientConfig
from .local import LocalRandomnessCoordinator

__all__ = [
    "RandomnessClient",
    "HttpRandomnessClient",
    "HttpRandomnessClientConfig",
    "LocalRandomnessCoordinator",
]
