"""
Enrichment pipeline contracts.

Every entity kind (lead, account) implements EntityAdapter. The batch runner
only sees the uniform interface: fetch the rows, describe one row for the
prompt, gather its optional context.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, asdict
from typing import Any, Dict, List, Optional, Type


@dataclass
class BatchResult:
    """Aggregate outcome of one batch run."""
    job_name: str
    status: str                     # completed | skipped | error
    total: int = 0
    processed: int = 0
    skipped: int = 0
    errors: int = 0
    error_messages: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class EntityAdapter(ABC):
    """
    Base class for enrichable entity kinds.

    entity_type is the value stored in ai_analysis.entity_type; job_name is
    the advisory flag row in enrichment_jobs.
    """
    entity_type: str = ''
    job_name: str = ''

    @abstractmethod
    def fetch_entities(self, session) -> List[Any]:
        """All rows eligible for a batch run, in processing order."""
        ...

    @abstractmethod
    def get_entity(self, session, entity_id: str) -> Optional[Any]:
        """Single row for on-demand enrichment, or None."""
        ...

    @abstractmethod
    def describe(self, entity) -> Dict[str, str]:
        """Ordered label → value pairs describing the entity in the prompt."""
        ...

    def gather_context(self, session, entity) -> Dict[str, str]:
        """Optional free-text context blocks. Never raises."""
        return {}

    def owner_id(self, entity) -> Optional[str]:
        return getattr(entity, 'owner_id', None)

    def label(self, entity) -> str:
        return str(getattr(entity, 'id', '?'))


# ── Adapter registry ──────────────────────────────────────────────────────────
# pipeline.entities populates ADAPTERS = {'lead': LeadAdapter, 'account': AccountAdapter}


def get_adapter(adapters: Dict[str, Type[EntityAdapter]], kind: str) -> EntityAdapter:
    """Look up and instantiate the adapter for an entity kind."""
    adapter_cls = adapters.get(kind)
    if not adapter_cls:
        raise ValueError(f"No adapter registered for entity kind '{kind}'")
    return adapter_cls()
