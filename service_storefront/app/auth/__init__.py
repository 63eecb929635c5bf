from .jwt_auth import AuthContext, JWTAuthenticator

__all__ = ["AuthContext", "JWTAuthenticator"]
