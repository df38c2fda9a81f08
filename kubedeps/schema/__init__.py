"""Schema-level relationship analysis of custom resource definitions.

Submodules:
    crd       -- Typed view over CustomResourceDefinition documents.
    catalog   -- Static catalog of well-known core resource kinds.
    analyzer  -- Depth-bounded schema walk and relationship inference.
    service   -- Fetches CRDs, applies caps and builds the schema graph.
"""
