from __future__ import annotations

from .storage.bans import RegistryBansMixin
from .storage.config_docs import RegistryConfigDocsMixin
from .storage.quota import RegistryQuotaMixin
from .storage.referrals import RegistryReferralsMixin
from .storage.schema import RegistrySchemaMixin
from .storage.subjects import RegistrySubjectsMixin
from .storage.usage import RegistryUsageMixin


class RegistryStore(
    RegistrySchemaMixin,
    RegistrySubjectsMixin,
    RegistryQuotaMixin,
    RegistryReferralsMixin,
    RegistryUsageMixin,
    RegistryBansMixin,
    RegistryConfigDocsMixin,
):
    """Persistent subject registry with embedded quota, referral edges, daily usage, bans and config documents."""
