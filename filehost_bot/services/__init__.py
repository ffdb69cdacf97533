from .artifact_store import ArtifactStore, LocalArtifactStore, StoredArtifact
from .messaging import MessagingSink, OutboundPayload, SendOutcome, SendResult

__all__ = [
    "ArtifactStore",
    "LocalArtifactStore",
    "MessagingSink",
    "OutboundPayload",
    "SendOutcome",
    "SendResult",
    "StoredArtifact",
]
