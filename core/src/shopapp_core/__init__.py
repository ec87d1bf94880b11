from shopapp_core.config import CoreConfig, load_core_config
from shopapp_core.home import ShopAppPaths, ensure_shopapp_layout, resolve_shopapp_home

__version__ = "0.1.0"

__all__ = [
    "CoreConfig",
    "ShopAppPaths",
    "__version__",
    "ensure_shopapp_layout",
    "load_core_config",
    "resolve_shopapp_home",
]
