"""合同管理客户端：会话 / 令牌生命周期与鉴权请求管线。"""

__version__ = "0.1.0"
