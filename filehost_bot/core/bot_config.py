from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass
from typing import Any, ClassVar, Protocol, TypeVar

from .auth import AdminGate
from .errors import ValidationError

logger = logging.getLogger("filehost_bot")

KNOWN_EXTENSIONS: tuple[str, ...] = ("html", "zip", "js", "css")


class ConfigDocStore(Protocol):
    async def read_config_doc(self, name: str) -> dict[str, Any] | None: ...

    async def write_config_doc(self, name: str, payload: dict[str, Any], updated_by: int | None) -> None: ...


@dataclass(slots=True, frozen=True)
class FileTypesConfig:
    DOC_NAME: ClassVar[str] = "file_types"

    html: bool = True
    zip: bool = True
    js: bool = False
    css: bool = False

    def is_allowed(self, extension: str) -> bool:
        ext = normalize_extension(extension)
        if ext not in KNOWN_EXTENSIONS:
            return False
        return bool(getattr(self, ext))

    def enabled_extensions(self) -> list[str]:
        return [ext for ext in KNOWN_EXTENSIONS if getattr(self, ext)]


@dataclass(slots=True, frozen=True)
class NotificationsConfig:
    DOC_NAME: ClassVar[str] = "notifications"

    enabled: bool = True


@dataclass(slots=True, frozen=True)
class PremiumSettings:
    DOC_NAME: ClassVar[str] = "premium_settings"

    default_slots: int = 20
    duration_days: int = 30
    welcome_message: str = "🎉 Welcome to Premium! You now have {slots} upload slots."

    def render_welcome(self, slots: int) -> str:
        return self.welcome_message.replace("{slots}", str(slots))


@dataclass(slots=True, frozen=True)
class WelcomeMessageConfig:
    DOC_NAME: ClassVar[str] = "welcome_message"

    # Empty text means the built-in greeting.
    text: str = ""

    def render(self, name: str, user_id: int) -> str:
        return self.text.replace("{name}", name).replace("{userId}", str(user_id))


ConfigDoc = TypeVar("ConfigDoc", FileTypesConfig, NotificationsConfig, PremiumSettings, WelcomeMessageConfig)


def normalize_extension(value: str) -> str:
    return str(value or "").strip().lower().lstrip(".")


def _coerce(value: Any, default: Any) -> Any:
    if isinstance(default, bool):
        if isinstance(value, bool):
            return value
        if isinstance(value, (int, float)):
            return bool(value)
        if isinstance(value, str):
            return value.strip().lower() in {"1", "true", "yes", "y", "on"}
        return default
    if isinstance(default, int):
        if isinstance(value, bool):
            return default
        try:
            return int(value)
        except (TypeError, ValueError):
            return default
    if isinstance(default, str):
        return value if isinstance(value, str) else default
    return default


class BotConfigStore:
    """Typed configuration documents persisted by name, last write wins."""

    def __init__(
        self,
        store: ConfigDocStore,
        gate: AdminGate,
        *,
        premium_default_slots: int = 20,
        premium_duration_days: int = 30,
    ) -> None:
        self.store = store
        self.gate = gate
        self._defaults: dict[type, object] = {
            FileTypesConfig: FileTypesConfig(),
            NotificationsConfig: NotificationsConfig(),
            PremiumSettings: PremiumSettings(
                default_slots=premium_default_slots,
                duration_days=premium_duration_days,
            ),
            WelcomeMessageConfig: WelcomeMessageConfig(),
        }

    def default(self, doc_type: type[ConfigDoc]) -> ConfigDoc:
        return self._defaults[doc_type]  # type: ignore[return-value]

    async def load(self, doc_type: type[ConfigDoc]) -> ConfigDoc:
        base = self.default(doc_type)
        payload = await self.store.read_config_doc(doc_type.DOC_NAME)
        if not payload:
            return base
        updates: dict[str, Any] = {}
        for item in dataclasses.fields(base):
            if item.name in payload:
                updates[item.name] = _coerce(payload[item.name], getattr(base, item.name))
        return dataclasses.replace(base, **updates)

    async def save(self, doc: ConfigDoc, actor_id: int | None) -> ConfigDoc:
        await self.store.write_config_doc(doc.DOC_NAME, dataclasses.asdict(doc), actor_id)
        logger.info("Config document %s updated by %s", doc.DOC_NAME, actor_id)
        return doc

    async def toggle_notifications(self, actor_id: int) -> NotificationsConfig:
        self.gate.require_admin(actor_id)
        current = await self.load(NotificationsConfig)
        return await self.save(NotificationsConfig(enabled=not current.enabled), actor_id)

    async def set_extension(self, actor_id: int, extension: str, enabled: bool) -> FileTypesConfig:
        self.gate.require_admin(actor_id)
        ext = normalize_extension(extension)
        if ext not in KNOWN_EXTENSIONS:
            raise ValidationError(f"Unknown file type '{extension}'. Known: {', '.join(KNOWN_EXTENSIONS)}")
        current = await self.load(FileTypesConfig)
        return await self.save(dataclasses.replace(current, **{ext: bool(enabled)}), actor_id)

    async def set_premium_default_slots(self, actor_id: int, slots: int) -> PremiumSettings:
        self.gate.require_admin(actor_id)
        if slots < 1:
            raise ValidationError("Premium slots must be a positive number.")
        current = await self.load(PremiumSettings)
        return await self.save(dataclasses.replace(current, default_slots=int(slots)), actor_id)

    async def set_premium_duration(self, actor_id: int, days: int) -> PremiumSettings:
        self.gate.require_admin(actor_id)
        if days < 1:
            raise ValidationError("Premium duration must be a positive number of days.")
        current = await self.load(PremiumSettings)
        return await self.save(dataclasses.replace(current, duration_days=int(days)), actor_id)

    async def set_premium_welcome(self, actor_id: int, text: str) -> PremiumSettings:
        self.gate.require_admin(actor_id)
        cleaned = str(text or "").strip()
        if not cleaned:
            raise ValidationError("Premium welcome message cannot be empty.")
        current = await self.load(PremiumSettings)
        return await self.save(dataclasses.replace(current, welcome_message=cleaned), actor_id)

    async def set_welcome_message(self, actor_id: int, text: str) -> WelcomeMessageConfig:
        self.gate.require_admin(actor_id)
        cleaned = str(text or "").strip()
        if not cleaned:
            raise ValidationError("Welcome message cannot be empty.")
        return await self.save(WelcomeMessageConfig(text=cleaned), actor_id)
