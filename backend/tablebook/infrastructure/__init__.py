"""
Infrastructure layer - storage and external system integrations.
Keeps reservation and account logic free of SQL and Redis details.
"""

from .redis_client import connect_redis, close_redis, revoke_token, is_token_revoked

__all__ = ['connect_redis', 'close_redis', 'revoke_token', 'is_token_revoked']
