"""Auditory models."""

from torch_erbpower.models.erbpower import ERBPower, ERBPowerConfig, erbpower

__all__ = ["ERBPower",
           "ERBPowerConfig",
           "erbpower",
           ]
