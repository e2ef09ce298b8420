from gitblog.config.loader import YamlConfigLoader
from gitblog.config.models import AppConfig, ConfigLoadRequest

__all__ = ["AppConfig", "ConfigLoadRequest", "YamlConfigLoader"]
