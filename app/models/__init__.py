"""Exports all models for easy access."""

from .base import Base, BaseModel
from .file import File, FileStatus
from .report import Report

__all__ = [
    "Base",
    "BaseModel",
    "File",
    "FileStatus",
    "Report",
]
