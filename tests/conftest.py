from datetime import datetime, timedelta, timezone

import pytest

BASE_TIME = datetime(2024, 1, 15, 21, 0, 0, tzinfo=timezone(timedelta(hours=9)))


class LogLines:
    """Monta linhas sintéticas no formato de rede do ACT."""

    @staticmethod
    def at(seconds: float) -> datetime:
        return BASE_TIME + timedelta(milliseconds=round(seconds * 1000))

    def ts(self, seconds: float) -> str:
        return self.at(seconds).isoformat(timespec="milliseconds")

    def change_zone(self, t: float, zone_id: str = "52B", name: str = "AAC Heavyweight M2 (Savage)") -> str:
        return f"01|{self.ts(t)}|{zone_id}|{name}|checksum"

    def add_combatant(
        self,
        t: float,
        entity_id: str,
        name: str,
        job: int = 19,
        x: float = 100.0,
        y: float = 100.0,
        z: float = 0.0,
        heading: float = 0.0,
    ) -> str:
        return (
            f"03|{self.ts(t)}|{entity_id}|{name}|{job}|100|0000|73|Tonberry|0|0"
            f"|100000|100000|10000|10000|||{x}|{y}|{z}|{heading}"
        )

    def starts_casting(
        self, t: float, source_id: str, source_name: str, action: str = "Cleave", cast_time: float = 4.7
    ) -> str:
        return (
            f"20|{self.ts(t)}|{source_id}|{source_name}|A1B2|{action}"
            f"|10AAAAAA|Alpha One|{cast_time}|100.0|100.0|0.0|0.0"
        )

    def action(
        self,
        t: float,
        source_id: str = "40CCCCCC",
        source_name: str = "Boss",
        target_id: str = "10AAAAAA",
        target_name: str = "Alpha One",
        code: int = 21,
    ) -> str:
        return f"{code}|{self.ts(t)}|{source_id}|{source_name}|7A1|Auto-attack|{target_id}|{target_name}|3|1A2B"

    def status_add(
        self,
        t: float,
        status_id: str,
        name: str,
        target_id: str = "10AAAAAA",
        target_name: str = "Alpha One",
        duration: str = "10.00",
        source_id: str = "40CCCCCC",
        source_name: str = "Boss",
    ) -> str:
        return (
            f"26|{self.ts(t)}|{status_id}|{name}|{duration}|{source_id}|{source_name}"
            f"|{target_id}|{target_name}|00|100000"
        )

    def status_remove(
        self, t: float, status_id: str, name: str, target_id: str = "10AAAAAA", target_name: str = "Alpha One"
    ) -> str:
        return f"27|{self.ts(t)}|{status_id}|{name}|0.00|40CCCCCC|Boss|{target_id}|{target_name}|00"

    def waymark(self, t: float, operation: str, marker: int, x: float = 100.0, y: float = 100.0, z: float = 0.0) -> str:
        return (
            f"29|{self.ts(t)}|{operation}|{marker}|10AAAAAA|Alpha One|0|0"
            f"|{round(x * 1000)}|0|{round(y * 1000)}|0|{round(z * 1000)}"
        )

    def wipe(self, t: float) -> str:
        return f"33|{self.ts(t)}|8003759A|40000010|00|00|00|00"

    def actor_control(self, t: float, command: str) -> str:
        return f"33|{self.ts(t)}|8003759A|{command}|00|00|00|00"

    def tether(self, t: float, source_id: str = "40CCCCCC", target_id: str = "10AAAAAA", tether_id: str = "0054") -> str:
        return f"40|{self.ts(t)}|{source_id}|Boss|{target_id}|Alpha One|0|0|{tether_id}"

    def update_hp(self, t: float, entity_id: str, name: str) -> str:
        return f"37|{self.ts(t)}|{entity_id}|{name}|100000|100000|10000|10000|0|0|0|101.0|99.0|0.0|0.0"


@pytest.fixture
def lines() -> LogLines:
    return LogLines()


@pytest.fixture
def end_to_end_log(lines: LogLines) -> str:
    """Zona única; primeiro encounter fechado por intervalo, segundo por wipe."""
    return "\n".join(
        [
            lines.change_zone(-1),
            lines.add_combatant(-0.5, "10AAAAAA", "Alpha One", job=19),
            lines.add_combatant(-0.5, "10BBBBBB", "Bravo Two", job=24),
            lines.add_combatant(-0.5, "40CCCCCC", "Boss"),
            lines.action(0),
            lines.status_add(5, "0DF", "Vulnerability Up"),
            lines.action(12),
            lines.action(52),
            lines.action(64),
            lines.wipe(65),
        ]
    )
