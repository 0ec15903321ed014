"""Tabela de jobs do FFXIV: id -> nome, abreviação e papel."""

from dataclasses import dataclass
from typing import Literal, TypeAlias

JobRole: TypeAlias = Literal["tank", "healer", "melee", "ranged", "caster"]


@dataclass(frozen=True, slots=True)
class JobInfo:
    id: int
    name: str
    abbreviation: str
    role: JobRole


# Lista completa até Dawntrail
JOBS: dict[int, JobInfo] = {
    job.id: job
    for job in (
        # Tanks
        JobInfo(19, "Paladin", "PLD", "tank"),
        JobInfo(21, "Warrior", "WAR", "tank"),
        JobInfo(32, "Dark Knight", "DRK", "tank"),
        JobInfo(37, "Gunbreaker", "GNB", "tank"),
        # Healers
        JobInfo(24, "White Mage", "WHM", "healer"),
        JobInfo(28, "Scholar", "SCH", "healer"),
        JobInfo(33, "Astrologian", "AST", "healer"),
        JobInfo(40, "Sage", "SGE", "healer"),
        # Melee DPS
        JobInfo(20, "Monk", "MNK", "melee"),
        JobInfo(22, "Dragoon", "DRG", "melee"),
        JobInfo(30, "Ninja", "NIN", "melee"),
        JobInfo(34, "Samurai", "SAM", "melee"),
        JobInfo(39, "Reaper", "RPR", "melee"),
        JobInfo(41, "Viper", "VPR", "melee"),
        # Physical ranged
        JobInfo(23, "Bard", "BRD", "ranged"),
        JobInfo(31, "Machinist", "MCH", "ranged"),
        JobInfo(38, "Dancer", "DNC", "ranged"),
        # Magical ranged
        JobInfo(25, "Black Mage", "BLM", "caster"),
        JobInfo(27, "Summoner", "SMN", "caster"),
        JobInfo(35, "Red Mage", "RDM", "caster"),
        JobInfo(42, "Pictomancer", "PCT", "caster"),
        # Classes base (raras em raid)
        JobInfo(1, "Gladiator", "GLA", "tank"),
        JobInfo(2, "Pugilist", "PGL", "melee"),
        JobInfo(3, "Marauder", "MRD", "tank"),
        JobInfo(4, "Lancer", "LNC", "melee"),
        JobInfo(5, "Archer", "ARC", "ranged"),
        JobInfo(6, "Conjurer", "CNJ", "healer"),
        JobInfo(7, "Thaumaturge", "THM", "caster"),
        JobInfo(26, "Arcanist", "ACN", "caster"),
        JobInfo(29, "Rogue", "ROG", "melee"),
    )
}

ROLE_PRIORITY: dict[str, int] = {
    "tank": 0,
    "healer": 1,
    "melee": 2,
    "ranged": 3,
    "caster": 4,
}


def get_job(job_id: int) -> JobInfo | None:
    return JOBS.get(job_id)


def get_job_abbreviation(job_id: int) -> str:
    return job.abbreviation if (job := JOBS.get(job_id)) else "UNK"


def get_job_role(job_id: int) -> JobRole | None:
    return job.role if (job := JOBS.get(job_id)) else None


def role_priority_key(job_id: int) -> tuple[int, int]:
    """Chave de ordenação: tank > healer > melee > ranged > caster.

    Jobs desconhecidos vão para o fim e mantêm a ordem original
    (sorted é estável).
    """
    role = get_job_role(job_id)
    if role is None:
        return len(ROLE_PRIORITY), 0
    return ROLE_PRIORITY[role], job_id
