# src/conveyr/config/const.py
from __future__ import annotations

# значения по умолчанию (переопределяются через Settings)
HANDLER_TIMEOUT_MS: int = 5000
LOG_LEVEL: str = "INFO"
PROFILE: str = "default"

# ':' зарезервирован шиной событий как разделитель топиков
ID_SEPARATOR: str = ":"
COMPLETED_TOPIC: str = "completed"
WILDCARD_TOPIC: str = "*"

ENV_PREFIX: str = "CONVEYR_"
CONFIG_FILE_NAME: str = "conveyr.yaml"
