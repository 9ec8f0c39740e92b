from sqlalchemy import func, select

from cricket_auction.importer import import_players, main, read_rows
from cricket_auction.models import Player, PlayerRaw

HEADER = (
    "cricketer_id,cricket_team,player_name,bowling_style,batting_style,role,"
    "class_band,base_price,country,ipl_team,ipl_type,player_status"
)
ROWS = [
    "C1,India,Virat Kohli,Right-arm medium,Right-hand bat,Batsman,Platinum,50,India,RCB,Retained,Active",
    "C2,India,Jasprit Bumrah,Right-arm fast,Right-hand bat,Bowler,Gold,40,India,MI,Retained,Active",
    "C3,Afghanistan,Rashid Khan,Legbreak,Right-hand bat,All-rounder,Silver,abc,Afghanistan,GT,Retained,Active",
    "C4,India,Old Timer,,Right-hand bat,Batsman,Gold,10,India,,,Retired",
    "C5,Nepal,Low Tier,,Left-hand bat,Bowler,Copper,5,Nepal,,,Active",
    "C6,India,Mystery Man,,Right-hand bat,Spinner,Gold,15,India,,,Active",
]


def _write_csv(tmp_path, rows=ROWS):
    path = tmp_path / "cricketers.csv"
    path.write_text("\ufeff" + "\n".join([HEADER, *rows]) + "\n", encoding="utf-8")
    return path


def test_read_rows_strips_bom(tmp_path):
    rows = read_rows(_write_csv(tmp_path))
    assert len(rows) == 6
    assert rows[0]["cricketer_id"] == "C1"
    assert rows[2]["base_price"] == "abc"


def test_import_filters_active_top_classes(db, tmp_path):
    summary = import_players(db, read_rows(_write_csv(tmp_path)))

    assert summary.total_rows == 6
    assert summary.raw_imported == 6
    assert summary.players_imported == 3
    assert summary.dropped == 1
    assert summary.by_class == {"Platinum": 1, "Gold": 1, "Silver": 1}
    assert summary.by_role == {"Batsman": 1, "Bowler": 1, "All-rounder": 1}

    names = set(db.scalars(select(Player.player_name)).all())
    assert names == {"Virat Kohli", "Jasprit Bumrah", "Rashid Khan"}
    rashid = db.scalars(select(Player).where(Player.player_name == "Rashid Khan")).one()
    assert rashid.base_price == 0
    assert rashid.class_band == "Silver"


def test_import_replaces_previous_data(db, tmp_path):
    path = _write_csv(tmp_path)
    import_players(db, read_rows(path))
    import_players(db, read_rows(path))

    assert db.scalar(select(func.count()).select_from(PlayerRaw)) == 6
    assert db.scalar(select(func.count()).select_from(Player)) == 3


def test_custom_class_list(db, tmp_path):
    summary = import_players(db, read_rows(_write_csv(tmp_path)), ["Copper"])
    assert summary.players_imported == 1
    assert summary.by_class == {"Copper": 1}


def test_command_line_entry_point(db, tmp_path):
    assert main([str(_write_csv(tmp_path)), "--classes", "Platinum", "Gold"]) == 0
    assert db.scalar(select(func.count()).select_from(Player)) == 2
