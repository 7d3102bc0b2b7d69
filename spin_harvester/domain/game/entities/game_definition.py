# spin_harvester/domain/game/entities/game_definition.py
from dataclasses import dataclass
from typing import Dict, Any, Optional


@dataclass(frozen=True)
class GameDefinition:
    """One catalog entry: a game that can be harvested."""
    game_id: int
    name: str
    api: str
    name_en: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GameDefinition":
        return cls(
            game_id=int(data["gameId"]),
            name=str(data.get("name", "")),
            api=str(data["api"]),
            name_en=data.get("name_en"),
        )

    def matches(self, key: str) -> bool:
        """True if ``key`` equals the id, name, English name or api slug."""
        key = str(key)
        return key in (str(self.game_id), self.name, self.name_en, self.api)

    @property
    def label(self) -> str:
        return f"{self.game_id} ({self.name_en or self.name})"
