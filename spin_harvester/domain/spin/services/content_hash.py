# spin_harvester/domain/spin/services/content_hash.py
import hashlib
import json
from typing import Dict, List, Any, Sequence, Union

from spin_harvester.domain.spin.entities.spin import Spin


# Bump whenever the canonical form changes; stored hashes stay comparable
# only within one version.
CANONICAL_VERSION = 1

# Provider bookkeeping that differs between otherwise identical outcomes.
VOLATILE_FIELDS = ("psid", "sid", "bl", "blab", "blb")


def canonicalize_spin_info(spin_info: Dict[str, Any]) -> Dict[str, Any]:
    """Copy of a ``dt.si`` dictionary without the volatile fields."""
    return {key: value for key, value in spin_info.items() if key not in VOLATILE_FIELDS}


def canonical_form(spins: Sequence[Union[Spin, Dict[str, Any]]]) -> str:
    """
    Deterministic serialization of a spin sequence.

    Accepts parsed spins or raw provider responses. Only the spin info of
    each response takes part; keys are sorted at every level and the
    separators are compact.
    """
    canonical: List[Any] = []
    for item in spins:
        raw = item.raw if isinstance(item, Spin) else item
        spin_info = Spin.extract_spin_info(raw)
        if spin_info is None:
            canonical.append(None)
        else:
            canonical.append(canonicalize_spin_info(spin_info))

    payload = {"v": CANONICAL_VERSION, "spins": canonical}
    return json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def compute_content_hash(spins: Sequence[Union[Spin, Dict[str, Any]]]) -> str:
    """MD5 hex digest of the canonical form; the deduplication key of a round."""
    return hashlib.md5(canonical_form(spins).encode("utf-8")).hexdigest()
