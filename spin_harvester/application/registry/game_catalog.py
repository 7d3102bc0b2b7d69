# spin_harvester/application/registry/game_catalog.py
import logging
from typing import Dict, List, Optional

from spin_harvester.domain.game.entities.game_definition import GameDefinition


class GameCatalog:
    """
    Registry of harvestable games loaded from a YAML catalog.
    """
    def __init__(self, config_loader, schema_path: Optional[str] = None):
        """
        Args:
            config_loader: YamlConfigLoader used to read the catalog
            schema_path: Optional JSON schema for the catalog file
        """
        self.logger = logging.getLogger("application.registry.catalog")
        self.config_loader = config_loader
        self.schema_path = schema_path
        self.games: Dict[int, GameDefinition] = {}  # game_id -> GameDefinition

    def load(self, catalog_path: str) -> List[int]:
        """
        Load every game of a catalog file.

        Returns:
            List of loaded game ids, in catalog order
        """
        self.logger.info(f"Loading game catalog from {catalog_path}")
        config = self.config_loader.load_file(catalog_path, self.schema_path)

        loaded = []
        for entry in config.get("games") or []:
            game = GameDefinition.from_dict(entry)
            if game.game_id in self.games:
                self.logger.warning(f"Duplicate catalog entry for game {game.game_id}, keeping the first")
                continue
            self.games[game.game_id] = game
            loaded.append(game.game_id)

        self.logger.info(f"Loaded {len(loaded)} games")
        return loaded

    def find(self, key: str) -> Optional[GameDefinition]:
        """
        Look a game up by id, name, English name or api slug.

        Returns:
            The first matching game, or None
        """
        for game in self.games.values():
            if game.matches(key):
                return game
        self.logger.warning(f"Game not found: {key}")
        return None

    def get_all_games(self) -> List[GameDefinition]:
        return list(self.games.values())

    def __len__(self) -> int:
        return len(self.games)
