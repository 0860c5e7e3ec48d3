from .interface import Model, ModelProvider, ModelTracing

__all__ = [
    "Model",
    "ModelProvider",
    "ModelTracing",
]
