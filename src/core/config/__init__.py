"""
Configuration subsystem for Pathway (2025).

Static vs Tunable Configuration
-------------------------------
**Static (Config):**
- Loaded from environment variables at startup (python-dotenv)
- Database URL, pool sizes, environment, logging switches

**Tunable (ConfigManager):**
- Loaded from YAML files under `config/`
- Leaderboard limits, fallback point tables, streak bonus defaults
- Import from `src.core.config.manager` (kept out of this package
  namespace because the logger depends on `Config`)

Usage
-----
```python
from src.core.config import Config
from src.core.config.manager import ConfigManager

Config.validate()
manager = ConfigManager.from_directory()
limit = manager.get("progression.leaderboard.default_limit", 10)
```
"""

from src.core.config.config import Config, Environment
from src.core.config.errors import (
    ConfigError,
    ConfigInitializationError,
    ConfigValidationError,
)

__all__ = [
    "Config",
    "Environment",
    "ConfigError",
    "ConfigInitializationError",
    "ConfigValidationError",
]
