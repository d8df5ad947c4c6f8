"""Explainer adapters around trained models."""

from .explainer import Explainer

__all__ = ["Explainer"]
