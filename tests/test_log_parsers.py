from __future__ import annotations

from datetime import datetime

from services.log_events import (
    AdminEvent,
    ChatEvent,
    ConnectEvent,
    DeathEvent,
    DisconnectEvent,
    EventType,
    KillEvent,
    PlayerCountEvent,
    PlayerListHeaderEvent,
    PositionEvent,
)
from services.log_parsers import (
    MATCHERS,
    LineClassifier,
    match_admin,
    match_chat,
    match_kill_death,
    parse_admin_actor,
    parse_distance,
    parse_hit_zone,
    parse_location,
    parse_steam_id,
    parse_timestamp,
    parse_weapon,
    sanitize_player,
)


# ---------------------------------------------------------------------------
# Kill / death
# ---------------------------------------------------------------------------

def test_passive_kill_swaps_actors(classifier):
    event = classifier.classify("Bob was killed by Alice with an AK74 near Berezino")

    assert isinstance(event, KillEvent)
    assert event.killer == "Alice"
    assert event.victim == "Bob"
    assert "AK74" in event.weapon
    assert "Berezino" in event.location


def test_active_kill_with_ids_headshot_and_distance(classifier):
    line = (
        "Alice (76561198000000001) killed Bob (76561198000000002) "
        "with AKM headshot from 120 meters"
    )
    event = classifier.classify(line)

    assert isinstance(event, KillEvent)
    assert event.killer == "Alice"
    assert event.victim == "Bob"
    assert event.weapon == "AKM"
    assert event.hit_zone == "Head"
    assert event.distance == 120.0
    assert event.killer_steam_id == "76561198000000001"
    assert event.victim_steam_id == "76561198000000002"


def test_passive_kill_ids_follow_the_names(classifier):
    line = "Bob (76561198000000002) was killed by Alice (76561198000000001)"
    event = classifier.classify(line)

    assert event.killer_steam_id == "76561198000000001"
    assert event.victim_steam_id == "76561198000000002"


def test_adm_kill_line(classifier):
    line = (
        '12:05:00 | Player "Bob" (DEAD) (id=Xyz= pos=<100.0, 200.0, 0.0>) killed by '
        'Player "Alice" (id=Abc= pos=<110.0, 210.0, 0.0>) with M4-A1 from 45.3 meters'
    )
    event = classifier.classify(line)

    assert isinstance(event, KillEvent)
    assert event.victim == "Bob"
    assert event.killer == "Alice"
    assert event.weapon == "M4-A1"
    assert event.distance == 45.3
    assert event.location == "100.0, 200.0, 0.0"
    assert event.timestamp == datetime(2024, 6, 1, 12, 5, 0)


def test_environmental_death_uses_verb_as_cause(classifier):
    event = classifier.classify('Player "Bob" (DEAD) (id=X pos=<1.0, 2.0, 3.0>) bled out')

    assert isinstance(event, DeathEvent)
    assert event.player == "Bob"
    assert event.cause == "bled out"
    assert event.location == "1.0, 2.0, 3.0"


def test_death_cause_from_phrase(classifier):
    event = classifier.classify("Bob died of hunger near Berezino")

    assert isinstance(event, DeathEvent)
    assert event.player == "Bob"
    assert event.cause == "hunger"
    assert event.location == "Berezino"


def test_plain_died_has_no_cause(classifier):
    event = classifier.classify("Bob died")

    assert isinstance(event, DeathEvent)
    assert event.cause is None


def test_kill_wins_over_admin_keywords(classifier):
    event = classifier.classify("Alice killed Bob, server restarting")

    assert event.event_type is EventType.KILL


def test_kill_matcher_ignores_unrelated_lines(fixed_now):
    assert match_kill_death("Server tick rate stable", fixed_now) is None


# ---------------------------------------------------------------------------
# Positions, counts, player list
# ---------------------------------------------------------------------------

def test_spotted_position(classifier):
    event = classifier.classify("Bob was spotted at 1363.5, 9658.0")

    assert isinstance(event, PositionEvent)
    assert event.player == "Bob"
    assert event.coords == "1363.5, 9658.0"


def test_player_is_at_position(classifier):
    event = classifier.classify('Player "Bob" is at 100.5, 200.25, 10')

    assert isinstance(event, PositionEvent)
    assert event.player == "Bob"
    assert event.coords == "100.5, 200.25, 10"


def test_script_position_with_metadata_blob(classifier):
    event = classifier.classify("player Bob (dpnid=123, id=abc) pos=<4500.1, 120.0, 9800.2>")

    assert isinstance(event, PositionEvent)
    assert event.player == "Bob"
    assert event.coords == "4500.1, 120.0, 9800.2"


def test_space_separated_position(classifier):
    event = classifier.classify("player Bob pos=4500 120 9800")

    assert isinstance(event, PositionEvent)
    assert event.coords == "4500, 120, 9800"


def test_player_counts(classifier):
    assert classifier.classify("Total Players: 42") == PlayerCountEvent(
        raw_line="Total Players: 42", timestamp=datetime(2024, 6, 1, 23, 0, 0), count=42
    )
    assert classifier.classify("Players Online = 7").count == 7
    assert classifier.classify("12:00:00 | PlayerList log: 5 players").count == 5


def test_player_list_header(classifier):
    event = classifier.classify("Latest Admin Player List - 2024-05-01 12:00:00 - Part 2")

    assert isinstance(event, PlayerListHeaderEvent)
    assert event.snapshot == "2024-05-01 12:00:00"
    assert event.part == 2
    assert event.timestamp == datetime(2024, 5, 1, 12, 0, 0)


# ---------------------------------------------------------------------------
# BattlEye
# ---------------------------------------------------------------------------

def test_battleye_connect(classifier):
    event = classifier.classify("BattlEye Server: Player #3 Bob (1.2.3.4:2304) connected")

    assert isinstance(event, ConnectEvent)
    assert event.player == "Bob"
    assert event.ip == "1.2.3.4:2304"
    assert event.source == "BattlEye"


def test_battleye_disconnect(classifier):
    event = classifier.classify("BattlEye Server: Player #3 Bob disconnected")

    assert isinstance(event, DisconnectEvent)
    assert event.player == "Bob"
    assert event.source == "BattlEye"


def test_battleye_kick_reason_after_colon(classifier):
    line = "BattlEye Server: Player #3 Bob (76561198000000003) was kicked by BattlEye: Admin Kick (spam)"
    event = classifier.classify(line)

    assert isinstance(event, AdminEvent)
    assert event.action == "kick"
    assert event.target == "Bob"
    assert event.reason == "Admin Kick (spam)"
    assert event.actor == "BattlEye"
    assert event.steam_id == "76561198000000003"


def test_battleye_ban_reason_in_parentheses(classifier):
    event = classifier.classify("BattlEye Server: Player #1 Eve banned (Cheating)")

    assert isinstance(event, AdminEvent)
    assert event.action == "ban"
    assert event.target == "Eve"
    assert event.reason == "Cheating"


# ---------------------------------------------------------------------------
# Connect / disconnect
# ---------------------------------------------------------------------------

def test_connect_quoted_name_and_identifier(classifier):
    event = classifier.classify("Player 'John Doe' connected (steamid=76561198000000000)")

    assert isinstance(event, ConnectEvent)
    assert event.player == "John Doe"
    assert event.steam_id == "76561198000000000"


def test_adm_connect_line(classifier):
    event = classifier.classify('12:00:01 | Player "Bob"(id=Abc123=) is connected')

    assert isinstance(event, ConnectEvent)
    assert event.player == "Bob"
    assert event.timestamp == datetime(2024, 6, 1, 12, 0, 1)


def test_connect_phrasings(classifier):
    assert classifier.classify("Bob has connected").player == "Bob"
    assert classifier.classify("joined the game: Bob").player == "Bob"
    assert classifier.classify("Player #2 Bob connected").player == "Bob"


def test_connect_picks_up_guid_and_ip(classifier):
    event = classifier.classify("Player Bob connected GUID: 0123456789abcdef0123 from 10.0.0.5:2304")

    assert event.guid == "0123456789abcdef0123"
    assert event.ip == "10.0.0.5:2304"


def test_disconnect_phrasings(classifier):
    event = classifier.classify('Player "Bob"(id=Abc123=) has been disconnected')
    assert isinstance(event, DisconnectEvent)
    assert event.player == "Bob"

    assert isinstance(classifier.classify("left the game: Bob"), DisconnectEvent)
    assert isinstance(classifier.classify("Bob has disconnected"), DisconnectEvent)


# ---------------------------------------------------------------------------
# Chat / admin
# ---------------------------------------------------------------------------

def test_chat_known_channel(classifier):
    event = classifier.classify('(Global) Bob: "hello there"')

    assert isinstance(event, ChatEvent)
    assert event.channel == "Global"
    assert event.player == "Bob"
    assert event.message == "hello there"


def test_chat_channel_is_normalized(fixed_now):
    event = match_chat("Chat: (side) Bob: hi", fixed_now)

    assert event.channel == "Side"


def test_chat_unknown_channel_passes_through(classifier):
    event = classifier.classify("Chat: (Team) Bob: hi")

    assert event.channel == "Team"
    assert event.message == "hi"


def test_admin_kick_with_tag_target_and_reason(classifier):
    event = classifier.classify("[Admin] Alice: kicked player Bob reason: spamming")

    assert isinstance(event, AdminEvent)
    assert event.action == "kicked"
    assert event.target == "Bob"
    assert event.reason == "spamming"
    assert event.actor == "Alice"


def test_admin_quoted_target_followed_by_action(classifier):
    event = classifier.classify("Player 'Griefer' kicked by admin Mod1 reason: spam")

    assert isinstance(event, AdminEvent)
    assert event.action == "kicked"
    assert event.target == "Griefer"
    assert event.actor == "Mod1"
    assert event.reason == "spam"


def test_admin_lifecycle_action_without_target(fixed_now):
    event = match_admin("Server restarting in 5 minutes", fixed_now)

    assert event.action == "restarting"
    assert event.target is None
    assert event.actor is None


def test_admin_actor_resolution_order():
    assert parse_admin_actor("[GM] Zed: ban player Bob") == "Zed"
    assert parse_admin_actor("Bob was banned by admin Carol") == "Carol"
    assert parse_admin_actor("kick Bob admin=Dave; reason=afk") == "Dave"
    assert parse_admin_actor("restart issued by Erin") == "Erin"
    assert parse_admin_actor("Server restarting") is None


# ---------------------------------------------------------------------------
# Classifier behaviour
# ---------------------------------------------------------------------------

def test_unmatched_line_is_dropped(classifier):
    assert classifier.classify("Server tick rate stable") is None


def test_empty_line_is_dropped(classifier):
    assert classifier.classify("   ") is None


def test_classification_is_repeatable(classifier):
    line = "Bob was killed by Alice with an AK74 near Berezino"

    assert classifier.classify(line) == classifier.classify(line)


def test_matcher_errors_are_treated_as_no_match(fixed_now):
    def broken(line, timestamp):
        raise RuntimeError("boom")

    classifier = LineClassifier(matchers=(broken, match_chat), clock=lambda: fixed_now)

    event = classifier.classify("(Direct) Bob: hi")

    assert isinstance(event, ChatEvent)


def test_matcher_priority_order():
    names = [matcher.__name__ for matcher in MATCHERS]

    assert names == [
        "match_kill_death",
        "match_script_position",
        "match_position",
        "match_player_count",
        "match_player_list_header",
        "match_battleye",
        "match_connect_disconnect",
        "match_chat",
        "match_admin",
    ]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def test_sanitize_player_strips_annotations():
    assert sanitize_player('"Bob"') == "Bob"
    assert sanitize_player('Player "Bob"') == "Bob"
    assert sanitize_player('"Bob" (DEAD)') == "Bob"
    assert sanitize_player("Bob (id=Abc123= pos=<1, 2, 3>)") == "Bob"
    assert sanitize_player("Bob SteamID=76561198000000000") == "Bob"
    assert sanitize_player("John   Doe has been kicked from the server") == "John Doe"
    assert sanitize_player("  (ALIVE)  ") is None
    assert sanitize_player(None) is None


def test_parse_timestamp_prefers_full_date(fixed_now):
    assert parse_timestamp("2024-05-01 10:11:12 | x", fixed_now) == datetime(2024, 5, 1, 10, 11, 12)
    assert parse_timestamp("2024-05-01T10:11:12 x", fixed_now) == datetime(2024, 5, 1, 10, 11, 12)


def test_parse_timestamp_time_only_uses_current_date(fixed_now):
    assert parse_timestamp("10:11:12 | x", fixed_now) == datetime(2024, 6, 1, 10, 11, 12)


def test_parse_timestamp_falls_back_to_now(fixed_now):
    assert parse_timestamp("no time here", fixed_now) == fixed_now


def test_field_helpers():
    assert parse_weapon("killed with weapon: Mosin9130 from 300m") == "Mosin9130"
    assert parse_weapon("nothing here") is None
    assert parse_location("shot at 123.4, 567.8") == "123.4, 567.8"
    assert parse_distance("dist=87.5m") == 87.5
    assert parse_distance("Bob (87m)") == 87.0
    assert parse_hit_zone("hit zone: torso") == "Torso"
    assert parse_hit_zone("clean headshot") == "Head"
    assert parse_steam_id("id 76561198000000009 here") == "76561198000000009"
    assert parse_steam_id("id 7656119800000000912 too long") is None
