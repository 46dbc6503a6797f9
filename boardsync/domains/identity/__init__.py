from boardsync.domains.identity.entities import User, Actor

__all__ = ["User", "Actor"]
