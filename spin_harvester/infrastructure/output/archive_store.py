# spin_harvester/infrastructure/output/archive_store.py
import json
import logging
import os
import re
from typing import Dict, List, Any, Optional, Tuple

import aiofiles


SPIN_FILE_PATTERN = re.compile(r"^Spin\.(\d+)\.jsonl$")
COMPLETION_MARKER = "complete.txt"
GAME_INFO_FILE = "GameInfo.json"


def spin_file_name(round_type: int) -> str:
    return f"Spin.{round_type}.jsonl"


def parse_round_type(file_name: str) -> Optional[int]:
    """Round type encoded in an archive file name, or None for other files."""
    match = SPIN_FILE_PATTERN.match(file_name)
    return int(match.group(1)) if match else None


class ArchiveStore:
    """
    File-system layout and I/O of the spin archive.

    Layout::

        <base_dir>/<gameId>/Spin.<roundType>.jsonl
        <base_dir>/<gameId>/complete.txt        normalCount|bonusCount
        <base_dir>/<gameId>/GameInfo.json

    Appends go through aiofiles, one write call per complete line, so
    instances sharing a file never interleave partial records.
    """
    def __init__(self, base_dir: str):
        self.logger = logging.getLogger("infrastructure.output.archive")
        self.base_dir = base_dir

    def game_dir(self, game_id) -> str:
        return os.path.join(self.base_dir, str(game_id))

    def spin_path(self, game_id, round_type: int) -> str:
        return os.path.join(self.game_dir(game_id), spin_file_name(round_type))

    def marker_path(self, game_id) -> str:
        return os.path.join(self.game_dir(game_id), COMPLETION_MARKER)

    def game_info_path(self, game_id) -> str:
        return os.path.join(self.game_dir(game_id), GAME_INFO_FILE)

    def file_exists(self, path: str) -> bool:
        return os.path.isfile(path)

    async def append_line(self, path: str, text: str):
        """Append one line; ``text`` must not contain a newline."""
        if "\n" in text:
            raise ValueError("archive lines must not contain newlines")
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        async with aiofiles.open(path, mode="a", encoding="utf-8") as file:
            await file.write(text + "\n")

    async def read_all_lines(self, path: str) -> List[str]:
        """
        All lines of a file without line terminators; empty when missing.

        Lines end at line feeds only, matching how the validator numbers them.
        Undecodable bytes are replaced so a corrupt line still counts once.
        """
        if not self.file_exists(path):
            return []
        async with aiofiles.open(path, mode="r", encoding="utf-8", errors="replace", newline="") as file:
            content = await file.read()
        lines = content.split("\n")
        if lines[-1] == "":
            lines.pop()
        return lines

    async def count_lines(self, path: str) -> int:
        """Number of non-blank lines."""
        lines = await self.read_all_lines(path)
        return sum(1 for line in lines if line.strip())

    def list_spin_files(self, game_id) -> Dict[int, str]:
        """Round type -> archive path for every Spin.<n>.jsonl of a game."""
        directory = self.game_dir(game_id)
        if not os.path.isdir(directory):
            return {}
        files = {}
        for name in sorted(os.listdir(directory)):
            round_type = parse_round_type(name)
            if round_type is not None:
                files[round_type] = os.path.join(directory, name)
        return files

    async def count_by_kind(self, game_id) -> Tuple[int, int]:
        """(normal, bonus) record counts over all archive files of a game."""
        normal = bonus = 0
        for round_type, path in self.list_spin_files(game_id).items():
            count = await self.count_lines(path)
            if round_type == 0:
                normal += count
            else:
                bonus += count
        return normal, bonus

    async def write_completion_marker(self, game_id, normal_count: int, bonus_count: int):
        path = self.marker_path(game_id)
        os.makedirs(os.path.dirname(path), exist_ok=True)
        async with aiofiles.open(path, mode="w", encoding="utf-8") as file:
            await file.write(f"{normal_count}|{bonus_count}")
        self.logger.debug(f"Wrote completion marker {normal_count}|{bonus_count} to {path}")

    async def read_completion_marker(self, game_id) -> Optional[Tuple[int, int]]:
        """
        Returns:
            (normal, bonus) counts, or None when the marker is missing or malformed
        """
        path = self.marker_path(game_id)
        if not self.file_exists(path):
            return None
        async with aiofiles.open(path, mode="r", encoding="utf-8") as file:
            content = (await file.read()).strip()
        parts = content.split("|")
        if len(parts) != 2:
            self.logger.warning(f"Malformed completion marker {path}: {content!r}")
            return None
        try:
            return int(parts[0] or 0), int(parts[1] or 0)
        except ValueError:
            self.logger.warning(f"Malformed completion marker {path}: {content!r}")
            return None

    async def write_game_info(self, game_id, game_info: Dict[str, Any]):
        path = self.game_info_path(game_id)
        os.makedirs(os.path.dirname(path), exist_ok=True)
        async with aiofiles.open(path, mode="w", encoding="utf-8") as file:
            await file.write(json.dumps(game_info, indent=2, ensure_ascii=False))
