"""
配置加载模块

从 config.yaml 加载配置，支持 Pydantic 验证和环境变量覆盖。

环境变量使用 EVENT_AGG_ 前缀，嵌套字段用双下划线分隔，例如：
    EVENT_AGG_AGGREGATOR__WINDOW_SECONDS=30
"""

import os
from pathlib import Path
from typing import List, Literal, Optional

import yaml
from pydantic import BaseModel, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseConfig(BaseModel):
    """数据库配置"""
    backend: Literal["sqlite", "memory"] = "sqlite"
    path: str = "data/events.db"
    timeout: float = 30


class WriterConfig(BaseModel):
    """事件写入配置"""
    category: str = "An event type"
    interval: float = Field(default=1.0, gt=0, description="写入间隔（秒）")
    sampler: Literal["uniform", "cpu"] = "uniform"
    sample_min: float = 0.0
    sample_max: float = 1000.0

    @model_validator(mode="after")
    def _check_range(self):
        if self.sample_max <= self.sample_min:
            raise ValueError("sample_max must be greater than sample_min")
        return self


class AggregatorConfig(BaseModel):
    """聚合配置"""
    category: str = "An event type"
    interval: float = Field(default=20.0, gt=0, description="聚合间隔（秒）")
    window_seconds: float = Field(default=20.0, gt=0, description="窗口长度（秒）")
    align_windows: bool = True

    @model_validator(mode="after")
    def _check_cadence(self):
        # 间隔大于窗口会漏掉两次窗口之间的事件
        if self.interval > self.window_seconds:
            raise ValueError("aggregator.interval must not exceed aggregator.window_seconds")
        return self


class APIConfig(BaseModel):
    """API 服务配置"""
    enabled: bool = True
    host: str = "0.0.0.0"
    port: int = 8080
    cors_origins: List[str] = ["http://localhost:8080", "http://127.0.0.1:8080"]


class LoggingConfig(BaseModel):
    """日志配置"""
    level: str = "INFO"
    file: Optional[str] = None
    max_size_mb: int = 50
    backup_count: int = 5


class AppConfig(BaseSettings):
    """应用配置（完整配置）"""
    model_config = SettingsConfigDict(env_prefix="EVENT_AGG_", env_nested_delimiter="__")

    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    writer: WriterConfig = Field(default_factory=WriterConfig)
    aggregator: AggregatorConfig = Field(default_factory=AggregatorConfig)
    api: APIConfig = Field(default_factory=APIConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        # 环境变量优先于配置文件
        return env_settings, init_settings


def load_config(config_path: Optional[str] = None) -> AppConfig:
    """
    加载配置文件

    优先级：
    1. 参数指定的路径
    2. 环境变量 EVENT_AGGREGATOR_CONFIG
    3. 默认路径 config.yaml

    文件中的相对路径以配置文件所在目录为基准。
    """
    if config_path is None:
        config_path = os.environ.get("EVENT_AGGREGATOR_CONFIG", "config.yaml")

    config_file = Path(config_path)

    if config_file.exists():
        with open(config_file, "r", encoding="utf-8") as f:
            raw_config = yaml.safe_load(f)
        if raw_config:
            base_dir = config_file.resolve().parent

            def _resolve_path(value: Optional[str]) -> Optional[str]:
                if not value:
                    return value
                path = Path(value)
                if path.is_absolute():
                    return str(path)
                return str((base_dir / path).resolve())

            if raw_config.get("database", {}).get("path"):
                raw_config["database"]["path"] = _resolve_path(raw_config["database"]["path"])
            if raw_config.get("logging", {}).get("file"):
                raw_config["logging"]["file"] = _resolve_path(raw_config["logging"]["file"])

            return AppConfig(**raw_config)

    # 配置文件不存在时使用默认配置
    return AppConfig()


# 全局配置实例（延迟加载）
_config: Optional[AppConfig] = None


def get_config() -> AppConfig:
    """获取全局配置实例（单例模式）"""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def reset_config():
    """重置配置（主要用于测试）"""
    global _config
    _config = None
