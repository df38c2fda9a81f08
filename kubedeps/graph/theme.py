"""Fixed glyph and colour tables used when rendering graphs.

Read-only and shared across requests.
"""

from __future__ import annotations

from types import MappingProxyType

from kubedeps.graph.models import RelationshipType

RELATIONSHIP_COLORS = MappingProxyType(
    {
        RelationshipType.OWNER: "#ff6b6b",
        RelationshipType.VOLUME: "#4ecdc4",
        RelationshipType.CONFIG_MAP: "#66bb6a",
        RelationshipType.SECRET: "#ef5350",
        RelationshipType.SERVICE_ACCOUNT: "#45b7d1",
        RelationshipType.IMAGE_PULL_SECRET: "#ab47bc",
        RelationshipType.ENVIRONMENT: "#29b6f6",
        RelationshipType.SERVICE: "#ffa726",
        RelationshipType.NETWORK: "#ba68c8",
        RelationshipType.SCHEDULING: "#ffca28",
        RelationshipType.CUSTOM: "#78909c",
    }
)

RELATIONSHIP_GLYPHS = MappingProxyType(
    {
        RelationshipType.OWNER: "👑",
        RelationshipType.VOLUME: "💾",
        RelationshipType.CONFIG_MAP: "⚙️",
        RelationshipType.SECRET: "🔐",
        RelationshipType.SERVICE_ACCOUNT: "👤",
        RelationshipType.IMAGE_PULL_SECRET: "🔑",
        RelationshipType.ENVIRONMENT: "🌱",
        RelationshipType.SERVICE: "🌐",
        RelationshipType.NETWORK: "🔗",
        RelationshipType.SCHEDULING: "🖥️",
        RelationshipType.CUSTOM: "🧩",
    }
)

RELATIONSHIP_DESCRIPTIONS = MappingProxyType(
    {
        RelationshipType.OWNER: "Ownership relationship (parent-child)",
        RelationshipType.VOLUME: "Volume or storage binding",
        RelationshipType.CONFIG_MAP: "ConfigMap mounted as a volume",
        RelationshipType.SECRET: "Secret mounted as a volume or used for TLS",
        RelationshipType.SERVICE_ACCOUNT: "Service account usage",
        RelationshipType.IMAGE_PULL_SECRET: "Image pull credentials",
        RelationshipType.ENVIRONMENT: "Environment variables sourced from config",
        RelationshipType.SERVICE: "Service discovery relationship",
        RelationshipType.NETWORK: "Network policy relationship",
        RelationshipType.SCHEDULING: "Scheduled onto a node",
        RelationshipType.CUSTOM: "Custom resource relationship",
    }
)

KIND_GLYPHS = MappingProxyType(
    {
        "pod": "🚀",
        "service": "🌐",
        "deployment": "📦",
        "configmap": "⚙️",
        "secret": "🔐",
        "persistentvolumeclaim": "💾",
        "persistentvolume": "💾",
        "storageclass": "🗄️",
        "namespace": "🏷️",
        "node": "🖥️",
        "serviceaccount": "👤",
        "ingress": "🌍",
        "networkpolicy": "🛡️",
        "replicaset": "📋",
        "daemonset": "⚡",
        "statefulset": "🗃️",
        "job": "⚙️",
        "cronjob": "⏰",
        "customresourcedefinition": "🔧",
    }
)

_DEFAULT_KIND_GLYPH = "📋"


def kind_glyph(kind: str) -> str:
    return KIND_GLYPHS.get(kind.lower(), _DEFAULT_KIND_GLYPH)
