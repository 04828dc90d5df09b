"""Data models for Coding and GitHub repositories."""

from .repository import Repository, RepositoryCreate, TargetRepository

__all__ = [
    'Repository',
    'RepositoryCreate',
    'TargetRepository',
]
