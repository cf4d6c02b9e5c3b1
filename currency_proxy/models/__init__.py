"""Pydantic request / response models for the conversion proxy."""

from .conversion import ConvertRequest, ConvertResponse, ErrorResponse

__all__ = [
    "ConvertRequest",
    "ConvertResponse",
    "ErrorResponse",
]
