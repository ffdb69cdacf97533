from .models import BanEntry, QuotaSnapshot, ReferrerStanding, Subject
from .store import RegistryStore

__all__ = ["BanEntry", "QuotaSnapshot", "ReferrerStanding", "RegistryStore", "Subject"]
