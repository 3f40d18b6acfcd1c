"""Pydantic schemas for external documents."""

from feedhub.schemas.directory import CategoryContent, LanguageContent, Site

__all__ = ["CategoryContent", "LanguageContent", "Site"]
