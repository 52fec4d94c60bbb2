from .config_manager import EngineSettings

__all__ = ['EngineSettings']
