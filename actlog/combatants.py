"""
Classificação de combatentes do log do ACT.

Heurísticas do formato, sem correção: ids começando com ``10`` são
jogadores, com ``40`` são inimigos; qualquer outro prefixo é ignorado.
Pets de jogador aparecem com id de jogador e são filtrados pelo nome,
usando uma lista fixa (e sabidamente incompleta) em inglês e japonês.
"""

import logging
from dataclasses import dataclass
from typing import Literal, TypeAlias

from actlog.events import AddCombatant, Position

logger = logging.getLogger("actlog.combatants")

Category: TypeAlias = Literal["player", "enemy"]

PLAYER_ID_PREFIX = "10"
ENEMY_ID_PREFIX = "40"
ENTITY_ID_LENGTH = 8

PET_NAMES: tuple[str, ...] = (
    # Scholar
    "フェアリー・エオス", "フェアリー・セレネ", "セラフィム",
    "Eos", "Selene", "Seraph",
    # Summoner
    "カーバンクル", "イフリート・エギ", "タイタン・エギ", "ガルーダ・エギ",
    "デミ・バハムート", "デミ・フェニックス", "ソーラーバハムート",
    "Carbuncle", "Ifrit-Egi", "Titan-Egi", "Garuda-Egi",
    "Demi-Bahamut", "Demi-Phoenix", "Solar Bahamut",
    # Machinist
    "オートマトン・クイーン", "オートマトン", "Automaton Queen",
    # Reaper
    "アヴァター", "Avatar", "英雄の影身",
    # Astrologian
    "アーサリースター", "Earthly Star",
    # White Mage
    "リタージーベル", "リタージー・オブ・ベル", "Liturgy Bell", "Liturgy of the Bell",
    # Pictomancer
    "クリーチャー", "Creature",
)
_PET_NAMES_LOWER = tuple(pet.lower() for pet in PET_NAMES)


@dataclass(frozen=True, slots=True)
class ParsedCombatant:
    id: str
    name: str
    job_id: int
    is_player: bool
    position: Position = Position()


@dataclass(frozen=True, slots=True)
class ZonePlayer:
    id: str
    name: str
    job_id: int = 0

    def to_combatant(self) -> ParsedCombatant:
        # Posição desconhecida fora do AddCombatant
        return ParsedCombatant(
            id=self.id, name=self.name, job_id=self.job_id, is_player=True
        )


def classify(entity_id: str) -> Category | None:
    """Classifica o id pelo prefixo de dois dígitos hex."""
    prefix = entity_id[:2].upper() if entity_id else ""
    if prefix == PLAYER_ID_PREFIX:
        return "player"
    if prefix == ENEMY_ID_PREFIX:
        return "enemy"
    return None


def is_player_id(entity_id: str) -> bool:
    """Versão estrita: exige também os 8 dígitos."""
    return len(entity_id) == ENTITY_ID_LENGTH and classify(entity_id) == "player"


def is_pet(name: str) -> bool:
    if not name:
        return False
    lower_name = name.lower()
    return any(pet in lower_name for pet in _PET_NAMES_LOWER)


def extract_combatant(event: AddCombatant) -> ParsedCombatant | None:
    """AddCombatant -> ParsedCombatant (id em maiúsculas); None para pets e ids sem categoria."""
    category = classify(event.id)
    if category is None:
        logger.debug("Id sem categoria ignorado: %s (%s)", event.id, event.name)
        return None
    is_player = category == "player"
    if is_player and is_pet(event.name):
        return None
    return ParsedCombatant(
        id=event.id.upper(),
        name=event.name,
        job_id=event.job_id,
        is_player=is_player,
        position=event.position,
    )
