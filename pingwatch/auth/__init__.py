from pingwatch.auth.tokens import Token, TokenAuthorizer

__all__ = ["Token", "TokenAuthorizer"]
