"""
@description 配置管理模块
@responsibility 加载和验证 config.yaml，支持环境变量覆盖
"""

import os
import sys
from pathlib import Path

import yaml
from pydantic import BaseModel, Field, field_validator

MIN_SECRET_LENGTH = 32


class EngineConfig(BaseModel):
    """下载引擎（qBittorrent WebUI）配置"""

    host: str = Field(..., description="引擎地址")
    port: int = Field(8080, description="引擎端口")
    username: str = Field("", description="登录用户名")
    password: str = Field("", description="登录密码")
    delete_files: bool = Field(True, description="删除种子时是否同时删除已下载文件")
    max_retries: int = Field(3, ge=1, description="API 调用最大重试次数")
    poll_attempts: int = Field(10, ge=1, description="添加种子后查询结果的最大次数")
    poll_interval: float = Field(0.5, ge=0, description="添加种子后查询间隔（秒）")


class DatabaseConfig(BaseModel):
    """数据库配置"""

    url: str = Field("sqlite+aiosqlite:///./db/data.db", description="数据库连接串")


class TokenConfig(BaseModel):
    """文件访问令牌配置"""

    secret: str = Field(..., description="签名密钥（建议通过 TOKEN_SECRET 注入）")
    ttl_hours: int = Field(24, ge=1, description="令牌有效期（小时）")
    algorithm: str = Field("HS256", description="签名算法")

    @field_validator("secret")
    @classmethod
    def secret_long_enough(cls, value: str) -> str:
        if len(value) < MIN_SECRET_LENGTH:
            raise ValueError(f"签名密钥长度不能少于 {MIN_SECRET_LENGTH} 个字符")
        return value


class Config(BaseModel):
    """全局配置"""

    engine: EngineConfig = Field(..., description="下载引擎配置")
    database: DatabaseConfig = Field(default_factory=DatabaseConfig, description="数据库配置")
    token: TokenConfig = Field(..., description="令牌配置")


def get_config_path() -> Path:
    """获取配置文件路径"""
    # 优先使用 CONFIG_PATH 环境变量，否则使用项目根目录的 config.yaml
    if config_path_str := os.environ.get("CONFIG_PATH"):
        return Path(config_path_str)
    return Path(__file__).parent.parent.parent / "config.yaml"


def load_config() -> Config:
    """加载配置文件并应用环境变量覆盖"""
    config_path = get_config_path()

    # 配置文件不存在时生成模板并退出
    if not config_path.exists():
        _generate_config_template(config_path)
        print(f"错误: 配置文件不存在: {config_path}")
        print(f"已生成配置模板: {config_path.parent / 'config.example.yaml'}")
        sys.exit(1)

    with open(config_path) as f:
        config_data = yaml.safe_load(f) or {}

    # 环境变量覆盖需在校验前合并，密钥可以只存在于环境变量中
    _apply_env_overrides(config_data)

    return Config(**config_data)


def _apply_env_overrides(config_data: dict) -> None:
    engine = config_data.setdefault("engine", {}) or {}
    config_data["engine"] = engine
    if host := os.environ.get("QBT_HOST"):
        engine["host"] = host
    if port := os.environ.get("QBT_PORT"):
        engine["port"] = int(port)
    if user := os.environ.get("QBT_USER"):
        engine["username"] = user
    if password := os.environ.get("QBT_PASS"):
        engine["password"] = password

    if database_url := os.environ.get("DATABASE_URL"):
        database = config_data.get("database") or {}
        database["url"] = database_url
        config_data["database"] = database

    if secret := os.environ.get("TOKEN_SECRET"):
        token = config_data.get("token") or {}
        token["secret"] = secret
        config_data["token"] = token


def _generate_config_template(config_path: Path) -> None:
    """生成配置模板文件"""
    template_path = config_path.parent / "config.example.yaml"

    if template_path.exists():
        return

    template_content = """# 下载引擎（qBittorrent WebUI）配置
engine:
  host: "127.0.0.1"
  port: 8080
  username: "admin"
  password: "adminadmin"
  # 删除种子时是否同时删除已下载的文件
  delete_files: true
  # API 调用失败时的最大重试次数（指数退避）
  max_retries: 3
  # 添加种子后轮询引擎确认结果的次数和间隔（秒）
  poll_attempts: 10
  poll_interval: 0.5

# 数据库配置
database:
  url: "sqlite+aiosqlite:///./db/data.db"

# 文件访问令牌配置
token:
  # 签名密钥，至少 32 个字符；生产环境请通过 TOKEN_SECRET 环境变量注入
  secret: ""
  # 令牌有效期（小时）
  ttl_hours: 24
  algorithm: "HS256"
"""

    with open(template_path, "w") as f:
        f.write(template_content)
