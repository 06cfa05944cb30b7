from .user import Group, GroupUser, User  # noqa: F401
