"""会话模块：凭据存储、登录态、令牌刷新与会话门面。"""
