from .bans import RegistryBansMixin
from .config_docs import RegistryConfigDocsMixin
from .quota import RegistryQuotaMixin
from .referrals import RegistryReferralsMixin
from .schema import RegistrySchemaMixin
from .subjects import RegistrySubjectsMixin
from .usage import RegistryUsageMixin

__all__ = [
    "RegistrySchemaMixin",
    "RegistrySubjectsMixin",
    "RegistryQuotaMixin",
    "RegistryReferralsMixin",
    "RegistryUsageMixin",
    "RegistryBansMixin",
    "RegistryConfigDocsMixin",
]
