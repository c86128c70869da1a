from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, field_validator


class UserCredentials(BaseModel):
    """用户凭据模型（邮箱/密码登录）"""
    email: str
    password: str


class UserProfile(BaseModel):
    """缓存在本地的用户资料，用于无需往返即可渲染身份"""
    model_config = ConfigDict(extra="ignore")

    id: str
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> str:
        # 服务端主键可能是整数
        return str(value)


class TokenResponse(BaseModel):
    """POST /token/ 响应"""
    model_config = ConfigDict(extra="ignore")

    user: UserProfile
    access: str
    refresh: str


class RefreshResponse(BaseModel):
    """POST /token/refresh/ 响应；refresh 仅在服务端轮换时返回"""
    model_config = ConfigDict(extra="ignore")

    access: str
    refresh: Optional[str] = None


class SessionSnapshot(BaseModel):
    user: Optional[UserProfile] = None
    loading: bool = True
