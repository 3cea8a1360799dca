"""
Profile Repository: named semantic buckets of clinical codes

==============================================================================
ARCHITECTURAL CONTEXT
==============================================================================

Every classifier rule is phrased in terms of named profiles rather than raw
codes:

    "any primary cancer coding is in Cancer-Breast"
    "any TNM stage group coding is in Stage-3 or Stage-4"

The profile table maps each profile name to its member codes, per canonical
code system:

    {
      "Cancer-Breast": {"SNOMED": ["783541009", ...], "ICD-10": ["C50", ...]},
      "Biomarker-HER2": {"LOINC": ["32996-1", ...]},
      ...
    }

The table is loaded once from a static JSON asset and is read-only from then
on. A repository instance is safe to share between any number of concurrent
classifications. The engine takes one at construction, so tests and alternate
rule tables can substitute their own.

Lookups never raise. An unknown profile, an unknown system or a coding with no
code is simply "not a member".
"""

import json
import logging
from pathlib import Path
from types import MappingProxyType
from typing import Dict, FrozenSet, Iterable, List, Mapping, Optional, Union

from .code_systems import Coding

logger = logging.getLogger("mcode-engine")

DEFAULT_PROFILE_TABLE = Path(__file__).parent / "data" / "profile_codes.json"


class ProfileTableError(ValueError):
    """The profile table asset is missing or not shaped profile -> system -> codes."""


# ==============================================================================
# PROFILE REPOSITORY
# ==============================================================================

class ProfileRepository:
    """
    Immutable lookup table of profile -> canonical system -> member codes.
    """

    def __init__(self, table: Mapping[str, Mapping[str, Iterable[str]]]):
        profiles: Dict[str, Mapping[str, FrozenSet[str]]] = {}
        for profile_name, systems in table.items():
            if not isinstance(systems, Mapping):
                raise ProfileTableError(f"Profile '{profile_name}' must map code systems to code lists")
            members = {}
            for system, codes in systems.items():
                if isinstance(codes, (str, bytes)) or not isinstance(codes, Iterable):
                    raise ProfileTableError(f"Profile '{profile_name}' system '{system}' must list codes")
                members[system] = frozenset(str(code) for code in codes)
            profiles[profile_name] = MappingProxyType(members)
        self._profiles = MappingProxyType(profiles)

    @classmethod
    def from_json(cls, path: Union[str, Path]) -> "ProfileRepository":
        """Load a repository from a JSON profile table."""
        path = Path(path)
        try:
            with open(path, "r", encoding="utf-8") as f:
                table = json.load(f)
        except FileNotFoundError as e:
            raise ProfileTableError(f"Profile table not found: {path}") from e
        except json.JSONDecodeError as e:
            raise ProfileTableError(f"Profile table is not valid JSON: {path} ({e})") from e

        if not isinstance(table, dict):
            raise ProfileTableError(f"Profile table must be a JSON object: {path}")

        repository = cls(table)
        logger.info(f"[PROFILES] Loaded {len(repository)} profiles from {path.name}")
        return repository

    def __len__(self) -> int:
        return len(self._profiles)

    def __contains__(self, profile_name: object) -> bool:
        return profile_name in self._profiles

    @property
    def profile_names(self) -> List[str]:
        return list(self._profiles.keys())

    def members(self, profile_name: str, system: str) -> FrozenSet[str]:
        """Member codes of a profile for one canonical system (empty if unknown)."""
        return self._profiles.get(profile_name, {}).get(system, frozenset())

    # --------------------------------------------------------------------------
    # Membership
    # --------------------------------------------------------------------------

    def profiles_contain_code(self, coding: Optional[Coding], *profile_names: str) -> bool:
        """True if the coding is a member of any of the named profiles."""
        if coding is None or not coding.code:
            return False
        system = coding.canonical_system
        if not system:
            return False
        return any(coding.code in self.members(name, system) for name in profile_names)

    def code_is_in_sheet(self, coding: Optional[Coding], profile_name: str) -> bool:
        return self.profiles_contain_code(coding, profile_name)

    def code_is_not_in_sheet(self, coding: Optional[Coding], profile_name: str) -> bool:
        """True for a coded entry that is not a member; codeless entries are neither."""
        if coding is None or not coding.code:
            return False
        return not self.code_is_in_sheet(coding, profile_name)

    def any_in(self, codings: Iterable[Coding], *profile_names: str) -> bool:
        """True if any coding in the list belongs to any of the named profiles."""
        return any(self.profiles_contain_code(coding, *profile_names) for coding in codings)

    def any_not_in(self, codings: Iterable[Coding], profile_name: str) -> bool:
        return any(self.code_is_not_in_sheet(coding, profile_name) for coding in codings)

    def extract_code_mappings(self, codings: Iterable[Coding]) -> List[str]:
        """
        Flatten a coding list into the profile names it touches.

        Returns profile names in table order, each at most once.
        """
        codings = [c for c in codings if c is not None and c.code and c.canonical_system]
        if not codings:
            return []
        return [
            name for name, systems in self._profiles.items()
            if any(c.code in systems.get(c.canonical_system, ()) for c in codings)
        ]

    def summary(self) -> Dict[str, Dict[str, int]]:
        """Per-profile member counts by system."""
        return {
            name: {system: len(codes) for system, codes in systems.items()}
            for name, systems in self._profiles.items()
        }


# ==============================================================================
# MODULE-LEVEL CONVENIENCE FUNCTIONS
# ==============================================================================

# Global repository instance
_repository: Optional[ProfileRepository] = None


def get_profile_repository(path: Optional[Union[str, Path]] = None) -> ProfileRepository:
    """Get or load the process-wide profile repository."""
    global _repository
    if _repository is None:
        _repository = ProfileRepository.from_json(path or DEFAULT_PROFILE_TABLE)
    return _repository


def reset_profile_repository():
    """Drop the cached repository so the next call reloads it."""
    global _repository
    _repository = None
