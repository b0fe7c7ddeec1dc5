"""
配置文件 - 项目配置管理
"""
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, field_validator


class Settings(BaseSettings):
    """项目配置"""

    # 基础配置
    PROJECT_NAME: str = Field(default="b2-storage-adapter")
    VERSION: str = Field(default="1.0.0")
    DEBUG: bool = Field(default=False)
    ENVIRONMENT: str = Field(default="development")

    # 日志配置
    LOG_LEVEL: str = Field(default="INFO")

    # pydantic-settings v2 configuration
    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("LOG_LEVEL", mode="before")
    @classmethod
    def _normalize_log_level(cls, v):
        """接受大小写不敏感的日志级别名称。"""
        if isinstance(v, str):
            return v.strip().upper() or "INFO"
        return v

    @property
    def user_agent(self) -> str:
        return f"{self.PROJECT_NAME}/{self.VERSION}"


settings = Settings()
