"""Utility modules for consensus nodes"""
from .config import settings
from .metrics import MetricsCollector

__all__ = ['settings', 'MetricsCollector']
