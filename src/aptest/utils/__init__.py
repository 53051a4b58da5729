from aptest.utils.config_loader import Settings, fetch_account, load_settings

__all__ = ["Settings", "fetch_account", "load_settings"]
