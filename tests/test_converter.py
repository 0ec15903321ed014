import logging

import orjson
import pytest

from actlog.combatants import ParsedCombatant
from actlog.converter import (
    DEFAULT_DEBUFF_COLOR,
    ConversionOptions,
    FieldMarker,
    Point,
    assign_roles,
    convert,
    convert_enemies,
    convert_waymarks,
    get_debuff_color,
    get_initials,
    ms_to_frame,
    normalize_position,
    unique_debuffs,
)
from actlog.events import Position, decode_line
from actlog.scanner import ParsedLogData, scan
from actlog.structure import scan_structure
from actlog.time_range import extract_encounter


@pytest.fixture
def parsed(lines) -> ParsedLogData:
    return scan(
        "\n".join(
            [
                lines.add_combatant(0, "10BBBBBB", "Bravo", job=24),
                lines.add_combatant(0, "10AAAAAA", "Alpha One", job=19, x=101.25, y=98.0),
                lines.add_combatant(0, "40CCCCCC", "Boss", x=100.0, y=90.0),
                lines.status_add(1, "0DF", "Vulnerability Up"),
                lines.status_add(1.2, "0DF", "Vulnerability Up"),
                lines.status_add(2.5, "0DF", "Vulnerability Up"),
                lines.status_add(3, "A1", "Stack Marker", target_id="10BBBBBB", target_name="Bravo"),
                lines.status_add(4, "B2", "Mystery", target_id="40CCCCCC", target_name="Boss"),
                lines.action(10),
            ]
        )
    )


def _combatant(entity_id: str, name: str, job_id: int = 0, is_player: bool = True) -> ParsedCombatant:
    return ParsedCombatant(id=entity_id, name=name, job_id=job_id, is_player=is_player)


def test_convert_players_and_enemies(parsed):
    timeline = convert(parsed, ConversionOptions(mechanic_name="M2S - Boss", fps=30))

    assert timeline.name == "M2S - Boss"
    assert timeline.fps == 30
    assert timeline.duration_frames == 300
    assert [(p.id, p.role, p.job, p.name) for p in timeline.initial_players] == [
        ("p1", "P1", "PLD", "AO"),
        ("p2", "P2", "WHM", "BR"),
    ]
    assert timeline.initial_players[0].position == Point(x=1.3, y=-2.0)
    assert [(e.id, e.name, e.position) for e in timeline.enemies] == [
        ("enemy_0", "Boss", Point(x=0.0, y=-10.0))
    ]
    assert timeline.field.type == "circle"
    assert timeline.field.size == 40


def test_debuff_timeline(parsed):
    """
    Mesmo status no mesmo alvo dentro do mesmo segundo conta uma vez;
    status em inimigos não entra na timeline.
    """
    timeline = convert(parsed, ConversionOptions(mechanic_name="M2S", fps=30))

    assert [(e.id, e.frame, e.target_id, e.debuff.name) for e in timeline.timeline] == [
        ("debuff_0", 30, "p1", "Vulnerability Up"),
        ("debuff_1", 75, "p1", "Vulnerability Up"),
        ("debuff_2", 90, "p2", "Stack Marker"),
    ]
    first = timeline.timeline[0]
    assert first.type == "debuff_add"
    assert first.debuff.id == "status_0DF"
    assert first.debuff.duration == 10.0
    assert first.debuff.color == "#ff4444"
    assert timeline.timeline[2].debuff.color == "#44ffff"


def test_time_offsets_drop_negative_frames(parsed):
    timeline = convert(
        parsed,
        ConversionOptions(mechanic_name="M2S", fps=30, start_time_offset=2000, end_time_offset=5000),
    )

    assert [e.frame for e in timeline.timeline] == [15, 30]
    assert timeline.duration_frames == 90
    assert timeline.id == f"imported_{round(parsed.start_time.timestamp() * 1000) + 2000}"


def test_convert_is_deterministic(parsed):
    options = ConversionOptions(mechanic_name="M2S", fps=60)

    assert convert(parsed, options) == convert(parsed, options)


def test_degenerate_input_gives_empty_timeline(caplog):
    caplog.set_level(logging.WARNING, logger="actlog.converter")
    timeline = convert(
        ParsedLogData(start_time=None, end_time=None), ConversionOptions(mechanic_name="Vazio", fps=30)
    )

    assert timeline.duration_frames == 0
    assert timeline.initial_players == ()
    assert timeline.enemies == ()
    assert timeline.timeline == ()
    assert timeline.markers == ()
    assert "degenerada" in caplog.text


def test_end_before_start_clamps_duration(parsed):
    timeline = convert(
        parsed,
        ConversionOptions(mechanic_name="M2S", fps=30, start_time_offset=5000, end_time_offset=1000),
    )

    assert timeline.duration_frames == 0


def test_custom_arena_center(parsed):
    timeline = convert(parsed, ConversionOptions(mechanic_name="M2S", fps=30, arena_center=(0.0, 0.0)))

    assert timeline.initial_players[0].position == Point(x=101.3, y=98.0)


def test_timeline_serializes_with_orjson(parsed):
    data = orjson.loads(orjson.dumps(convert(parsed, ConversionOptions(mechanic_name="M2S", fps=30))))

    assert data["initial_players"][0]["role"] == "P1"
    assert data["initial_players"][0]["position"] == {"x": 1.3, "y": -2.0}
    assert data["timeline"][0]["type"] == "debuff_add"
    assert data["field"]["background_color"] == "#1a1a3e"


def test_assign_roles_dedups_and_caps_at_eight():
    players = [_combatant("10000001", "First Name", 19), _combatant("10000001", "Duplicate", 21)]
    players += [_combatant(f"1000001{i}", f"Player {i}") for i in range(9)]

    assigned = assign_roles(players)

    assert len(assigned) == 8
    assert assigned[0].name == "FN"
    assert assigned[0].job == "PLD"
    assert assigned[1].job == "UNK"
    assert [p.role for p in assigned] == ["P1", "P2", "P3", "P4", "P5", "P6", "P7", "P8"]


def test_convert_enemies_filters_placeholders_and_caps():
    enemies = [_combatant("40000001", "Boss", is_player=False), _combatant("40000002", "", is_player=False)]
    enemies.append(_combatant("40000003", "E0012345", is_player=False))
    enemies += [_combatant(f"4000010{i}", f"Add {i}", is_player=False) for i in range(5)]

    converted = convert_enemies(enemies)

    assert [e.name for e in converted] == ["Boss", "Add 0", "Add 1", "Add 2", "Add 3"]
    assert [e.id for e in converted] == [f"enemy_{i}" for i in range(5)]


def test_waymarks_keep_last_state(lines):
    waymarks = [
        decode_line(lines.waymark(0, "Add", 0, x=100.5)),
        decode_line(lines.waymark(1, "Add", 1, x=90.0)),
        decode_line(lines.waymark(2, "Delete", 1)),
        decode_line(lines.waymark(3, "Add", 0, x=110.0)),
        decode_line(lines.waymark(4, "Add", 9)),
        decode_line(lines.waymark(5, "Add", 7, y=80.0)),
    ]

    assert convert_waymarks(waymarks) == [
        FieldMarker(type="A", position=Point(x=10.0, y=0.0)),
        FieldMarker(type="4", position=Point(x=0.0, y=-20.0)),
    ]


@pytest.mark.parametrize(
    "name, expected",
    [
        ("Vulnerability Up", "#ff4444"),
        ("Damage Down", "#ff4444"),
        ("Regen", "#44ff44"),
        ("Magic Vulnerability Up", "#ff4444"),
        ("Spell-in-Waiting", "#4444ff"),
        ("Enmity Up", "#ffff44"),
        ("Stack Marker", "#44ffff"),
        ("集合", "#44ffff"),
        ("Spread Marker", "#ff8844"),
        ("Doom", DEFAULT_DEBUFF_COLOR),
    ],
)
def test_debuff_colors(name, expected):
    assert get_debuff_color(name) == expected


def test_small_helpers():
    assert ms_to_frame(500, 1) == 1
    assert ms_to_frame(1499, 1) == 1
    assert ms_to_frame(1000, 30) == 30
    assert get_initials("Alpha One") == "AO"
    assert get_initials("Alpha Bravo Charlie") == "AB"
    assert get_initials("Solo") == "SO"
    assert get_initials("") == ""
    assert normalize_position(Position(x=100.04, y=99.95)) == Point(x=0.0, y=-0.0)


def test_unique_debuffs(parsed):
    assert unique_debuffs(parsed) == [
        ("0DF", "Vulnerability Up", 3),
        ("A1", "Stack Marker", 1),
        ("B2", "Mystery", 1),
    ]


def test_non_finite_positions_do_not_break_conversion():
    """Posição NaN/inf vinda de fora do decodificador cai no centro em vez de levantar."""
    parsed = ParsedLogData(
        start_time=None,
        end_time=None,
        players=[
            ParsedCombatant(
                id="10000001",
                name="Alpha One",
                job_id=19,
                is_player=True,
                position=Position(x=float("nan"), y=float("inf")),
            )
        ],
    )

    timeline = convert(parsed, ConversionOptions(mechanic_name="NaN", fps=30))

    assert timeline.initial_players[0].position == Point(x=0.0, y=0.0)


def test_lowercase_ids_keep_debuffs(lines):
    """
    Ids em minúsculas no log: o roster da zona sai em maiúsculas e o alvo
    do status continua em minúsculas; a comparação não diferencia caixa.
    """
    text = "\n".join(
        [
            lines.change_zone(-1),
            lines.add_combatant(-0.5, "10aaaaaa", "Alpha One", job=19),
            lines.add_combatant(-0.5, "40cccccc", "Boss"),
            lines.action(0, source_id="40cccccc", target_id="10aaaaaa"),
            lines.status_add(5, "0DF", "Vulnerability Up", target_id="10aaaaaa", source_id="40cccccc"),
            lines.action(12, source_id="40cccccc", target_id="10aaaaaa"),
        ]
    )
    zone, encounter = scan_structure(text).encounters[0]

    parsed = extract_encounter(text, zone, encounter)
    timeline = convert(parsed, ConversionOptions(mechanic_name="M2S", fps=30))

    assert [p.id for p in parsed.players] == ["10AAAAAA"]
    assert [(e.frame, e.target_id) for e in timeline.timeline] == [(150, "p1")]


def test_debuff_dedup_uses_whole_milliseconds(lines):
    """45.9996 s ainda pertence ao segundo 45; 46.000 abre outro segundo."""
    sub_ms = lines.status_add(45.999, "0DF", "Vulnerability Up").replace(
        lines.ts(45.999), "2024-01-15T21:00:45.9996+09:00"
    )
    parsed = scan(
        "\n".join(
            [
                lines.add_combatant(0, "10AAAAAA", "Alpha One", job=19),
                sub_ms,
                lines.status_add(46, "0DF", "Vulnerability Up"),
            ]
        )
    )

    timeline = convert(parsed, ConversionOptions(mechanic_name="M2S", fps=1000))

    assert [e.frame for e in timeline.timeline] == [45_999, 46_000]
