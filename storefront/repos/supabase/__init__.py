from .auth import SupabaseIdentityService

__all__ = ["SupabaseIdentityService"]
