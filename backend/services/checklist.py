"""
Réconciliation de la checklist des papiers d'un bien

Le formulaire renvoie l'état complet souhaité : les papiers déjà enregistrés
portent leur id, ceux ajoutés côté client un id "temp-..." (ou aucun id).
"""
from dataclasses import dataclass, field
from typing import Any, List, Optional, Sequence, Tuple

from constants import PLACEHOLDER_ID_PREFIX


def is_placeholder_id(value: Any) -> bool:
    if value is None:
        return True
    return isinstance(value, str) and value.startswith(PLACEHOLDER_ID_PREFIX)


def persisted_id(value: Any) -> Optional[int]:
    """Id entier d'un élément déjà enregistré, None sinon"""
    if is_placeholder_id(value) or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


@dataclass
class ChecklistDiff:
    to_create: List[Any] = field(default_factory=list)
    to_update: List[Tuple[Any, Any]] = field(default_factory=list)  # (existant, souhaité)
    to_delete: List[Any] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (self.to_create or self.to_update or self.to_delete)


def reconcile_papiers(existing: Sequence[Any], incoming: Sequence[Any]) -> ChecklistDiff:
    """
    Calcule les opérations pour passer de `existing` (lignes en base) à `incoming`
    (état souhaité) :
    - id connu : mise à jour
    - id provisoire, absent ou inconnu de ce bien : création
    - ligne existante non reprise : suppression
    """
    diff = ChecklistDiff()
    existing_by_id = {item.id: item for item in existing}
    kept_ids = set()

    for wanted in incoming:
        item_id = persisted_id(wanted.id)
        current = existing_by_id.get(item_id) if item_id is not None else None
        if current is None or item_id in kept_ids:
            diff.to_create.append(wanted)
        else:
            kept_ids.add(item_id)
            diff.to_update.append((current, wanted))

    diff.to_delete = [item for item in existing if item.id not in kept_ids]
    return diff
