"""Configuration management for the voting system."""

from .config import SystemConfig, ZKConfig, RegistrarConfig, load_config, save_config

__all__ = ['SystemConfig', 'ZKConfig', 'RegistrarConfig', 'load_config', 'save_config']
