"""Relationship rule engine for kubedeps.

Each ``rNN_*`` module contributes one ``RelationshipRule``;
``default_rules()`` returns them in evaluation order.
"""

from __future__ import annotations

from kubedeps.rules.base import RelationshipRule, RelationshipRuleEngine
from kubedeps.rules.r01_owner_references import OwnerReferenceRule
from kubedeps.rules.r02_pod_volumes import PodVolumeRule
from kubedeps.rules.r03_pod_environment import PodEnvironmentRule
from kubedeps.rules.r04_pod_identity import PodIdentityRule
from kubedeps.rules.r05_scheduling import SchedulingRule
from kubedeps.rules.r06_storage import StorageBindingRule
from kubedeps.rules.r07_ingress import IngressBackendRule
from kubedeps.rules.r08_selectors import LabelSelectorRule
from kubedeps.rules.reverse_index import PROVIDER_KINDS, ReverseIndex


def default_rules() -> list[RelationshipRule]:
    return [
        OwnerReferenceRule(),
        PodVolumeRule(),
        PodEnvironmentRule(),
        PodIdentityRule(),
        SchedulingRule(),
        StorageBindingRule(),
        IngressBackendRule(),
        LabelSelectorRule(),
    ]


__all__ = [
    "PROVIDER_KINDS",
    "RelationshipRule",
    "RelationshipRuleEngine",
    "ReverseIndex",
    "default_rules",
]
