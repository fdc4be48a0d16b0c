from .attempt_service import AttemptService, Role, SessionContext

__all__ = ["AttemptService", "Role", "SessionContext"]
