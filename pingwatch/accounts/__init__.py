from pingwatch.accounts.users import UserService

__all__ = ["UserService"]
