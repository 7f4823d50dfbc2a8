"""
core/config.py — 配置加载

• 读取 YAML 配置（CONFIG_PATH 环境变量，默认 ./config.yaml）
• 支持 ${ENV_VAR:-default} 形式的环境变量替换
• cfg.get("billing.worker_interval_seconds", 30) 通过点号路径取值

使用方式：
    from wc_subscriptions.core.config import cfg
    interval = int(cfg.get("billing.worker_interval_seconds", 30) or 30)
"""

import os
import re
from typing import Any, Dict, Optional

import yaml

from wc_subscriptions import VERSION

API_BASE = "/api/v1"

_ENV_PATTERN = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)(?::-([^}]*))?\}")


class Config:
    def __init__(self, config_path: Optional[str] = None):
        self.config_path = config_path or os.getenv("CONFIG_PATH", "config.yaml")
        self.config: Dict[str, Any] = {}
        self.reload()

    def reload(self) -> Dict[str, Any]:
        if not os.path.exists(self.config_path):
            self.config = {}
            return self.config
        with open(self.config_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        self.config = data if isinstance(data, dict) else {}
        return self.config

    def replace_env_vars(self, value: Any) -> Any:
        """递归替换 ${VAR:-default}，整值替换时按 YAML 标量还原类型。"""
        if isinstance(value, dict):
            return {k: self.replace_env_vars(v) for k, v in value.items()}
        if isinstance(value, list):
            return [self.replace_env_vars(v) for v in value]
        if not isinstance(value, str) or "${" not in value:
            return value

        def _sub(match):
            return os.getenv(match.group(1), match.group(2) or "")

        whole = _ENV_PATTERN.fullmatch(value.strip())
        replaced = _ENV_PATTERN.sub(_sub, value)
        if whole:
            if replaced == "":
                return ""
            try:
                return yaml.safe_load(replaced)
            except yaml.YAMLError:
                return replaced
        return replaced

    def get(self, key: str, default: Any = None) -> Any:
        cursor: Any = self.config
        for part in [x for x in str(key or "").split(".") if x]:
            if not isinstance(cursor, dict) or part not in cursor:
                return default
            cursor = cursor[part]
        value = self.replace_env_vars(cursor)
        if value is None or value == "":
            return default
        return value

    def set(self, key: str, value: Any) -> None:
        keys = [x for x in str(key or "").split(".") if x]
        if not keys:
            return
        if not isinstance(self.config, dict):
            self.config = {}
        cursor = self.config
        for part in keys[:-1]:
            if not isinstance(cursor.get(part), dict):
                cursor[part] = {}
            cursor = cursor[part]
        cursor[keys[-1]] = value

    def save_config(self) -> None:
        folder = os.path.dirname(os.path.abspath(self.config_path))
        os.makedirs(folder, exist_ok=True)
        with open(self.config_path, "w", encoding="utf-8") as f:
            yaml.safe_dump(self.config, f, allow_unicode=True, sort_keys=False)


cfg = Config()

__all__ = ["cfg", "Config", "VERSION", "API_BASE"]
