from ._settings import HarnessSettings, load_settings, settings_from_mapping

__all__ = [
    HarnessSettings.__name__,
    load_settings.__name__,
    settings_from_mapping.__name__,
]
