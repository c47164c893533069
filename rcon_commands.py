"""Named wrappers for common HLL RCON v2 commands.

Every helper takes anything with an ``execute(command, content_body)`` method
(a :class:`session_manager.Session` or a bare :class:`rcon_v2.RconV2`) and
returns the raw :class:`rcon_protocol.Response`; decoding ``content_body`` is
left to the caller via ``Response.parsed_content()``.
"""

import logging

log = logging.getLogger(__name__)

GET_SERVER_INFORMATION = "GetServerInformation"


def get_server_information(session, name: str, value: str = ""):
    return session.execute(GET_SERVER_INFORMATION, {"Name": name, "Value": value})


def get_players(session):
    return get_server_information(session, "players")


def get_player(session, player_id: str):
    return get_server_information(session, "player", player_id)


def get_map_rotation(session):
    return get_server_information(session, "maprotation")


def get_map_sequence(session):
    return get_server_information(session, "mapsequence")


def get_vip_players(session):
    return get_server_information(session, "vipplayers")


def get_banned_words(session):
    return get_server_information(session, "bannedwords")


def get_admin_log(session, seconds: int, filters: str = ""):
    # The server expects the lookback as a string.
    return session.execute("GetAdminLog", {"LogBackTrackTime": str(seconds), "Filters": filters})


def get_admin_users(session):
    return session.execute("GetAdminUsers", "")


def get_admin_groups(session):
    return session.execute("GetAdminGroups", "")


def get_temporary_bans(session):
    return session.execute("GetTemporaryBans", "")


def get_permanent_bans(session):
    return session.execute("GetPermanentBans", "")


def get_displayable_commands(session):
    return session.execute("GetDisplayableCommands", "")


def get_client_reference_data(session, command_id: str):
    # The command id is sent as the bare contentBody string.
    return session.execute("GetClientReferenceData", command_id)


def get_server_changelist(session):
    return session.execute("GetServerChangelist", "")


def add_admin(session, player_id: str, admin_group: str, comment: str = ""):
    log.info("Adding %s to admin group %s", player_id, admin_group)
    return session.execute(
        "AddAdmin", {"PlayerId": player_id, "AdminGroup": admin_group, "Comment": comment}
    )


def remove_admin(session, player_id: str):
    return session.execute("RemoveAdmin", {"PlayerId": player_id})


def server_broadcast(session, message: str):
    log.info("Broadcasting server message (%d chars)", len(message))
    return session.execute("ServerBroadcast", {"Message": message})


def set_welcome_message(session, message: str):
    return session.execute("SetWelcomeMessage", {"Message": message})


def message_player(session, player_id: str, message: str):
    return session.execute("MessagePlayer", {"PlayerId": player_id, "Message": message})


def kick_player(session, player_id: str, reason: str):
    log.info("Kicking player %s", player_id)
    return session.execute("KickPlayer", {"PlayerId": player_id, "Reason": reason})


def punish_player(session, player_id: str, reason: str):
    return session.execute("PunishPlayer", {"PlayerId": player_id, "Reason": reason})


def temporary_ban_player(session, player_id: str, duration: int, reason: str, admin_name: str):
    log.info("Temporarily banning player %s (duration %s)", player_id, duration)
    return session.execute(
        "TemporaryBanPlayer",
        {"PlayerId": player_id, "Duration": duration, "Reason": reason, "AdminName": admin_name},
    )


def permanent_ban_player(session, player_id: str, reason: str, admin_name: str):
    log.info("Permanently banning player %s", player_id)
    return session.execute(
        "PermanentBanPlayer",
        {"PlayerId": player_id, "Reason": reason, "AdminName": admin_name},
    )


def force_team_switch(session, player_id: str, force_mode: int):
    """Move a player to the other team.

    ``force_mode`` is 0 to switch on death, 1 to switch immediately.
    """
    if force_mode not in (0, 1):
        raise ValueError("force_mode must be 0 (on death) or 1 (immediately)")
    return session.execute("ForceTeamSwitch", {"PlayerId": player_id, "ForceMode": force_mode})


def remove_player_from_platoon(session, player_id: str, reason: str = ""):
    return session.execute("RemovePlayerFromPlatoon", {"PlayerId": player_id, "Reason": reason})


def disband_platoon(session, team_index: int, squad_index: int, reason: str = ""):
    return session.execute(
        "DisbandPlatoon", {"TeamIndex": team_index, "SquadIndex": squad_index, "Reason": reason}
    )


def remove_temporary_ban(session, player_id: str):
    return session.execute("RemoveTemporaryBan", {"PlayerId": player_id})


def remove_permanent_ban(session, player_id: str):
    return session.execute("RemovePermanentBan", {"PlayerId": player_id})


def add_vip(session, player_id: str, comment: str = ""):
    return session.execute("AddVip", {"PlayerId": player_id, "Comment": comment})


def remove_vip(session, player_id: str):
    return session.execute("RemoveVip", {"PlayerId": player_id})


def change_map(session, map_name: str):
    log.info("Changing map to %s", map_name)
    return session.execute("ChangeMap", {"MapName": map_name})


def add_map_to_rotation(session, map_name: str, index: int):
    return session.execute("AddMapToRotation", {"MapName": map_name, "Index": index})


def remove_map_from_rotation(session, index: int):
    return session.execute("RemoveMapFromRotation", {"Index": index})


def add_map_to_sequence(session, map_name: str, index: int):
    return session.execute("AddMapToSequence", {"MapName": map_name, "Index": index})


def remove_map_from_sequence(session, index: int):
    return session.execute("RemoveMapFromSequence", {"Index": index})


def set_map_shuffle_enabled(session, enable: bool):
    return session.execute("SetMapShuffleEnabled", {"Enable": enable})


def move_map_in_sequence(session, current_index: int, new_index: int):
    return session.execute("MoveMapInSequence", {"CurrentIndex": current_index, "NewIndex": new_index})


def set_sector_layout(session, sectors):
    """Set the five objective sectors, one name per sector in order."""
    sectors = list(sectors)
    if len(sectors) != 5:
        raise ValueError(f"expected 5 sectors, got {len(sectors)}")
    return session.execute(
        "SetSectorLayout", {f"Sector_{n}": name for n, name in enumerate(sectors, start=1)}
    )


def add_banned_words(session, banned_words: str):
    return session.execute("AddBannedWords", {"BannedWords": banned_words})


def remove_banned_words(session, banned_words: str):
    return session.execute("RemoveBannedWords", {"BannedWords": banned_words})


# Server settings

def set_team_switch_cooldown(session, minutes: int):
    return session.execute("SetTeamSwitchCooldown", {"TeamSwitchTimer": minutes})


def set_max_queued_players(session, count: int):
    return session.execute("SetMaxQueuedPlayers", {"MaxQueuedPlayers": count})


def set_idle_kick_duration(session, minutes: int):
    return session.execute("SetIdleKickDuration", {"IdleTimeoutMinutes": minutes})


def set_high_ping_threshold(session, milliseconds: int):
    return session.execute("SetHighPingThreshold", {"HighPingThresholdMs": milliseconds})


def set_vip_slot_count(session, count: int):
    return session.execute("SetVipSlotCount", {"VipSlotCount": count})


def set_vote_kick_enabled(session, enable: bool):
    return session.execute("SetVoteKickEnabled", {"Enable": enable})


def set_vote_kick_threshold(session, threshold_value: str):
    # Comma separated "players,votes" pairs; the server expects a string.
    return session.execute("SetVoteKickThreshold", {"ThresholdValue": threshold_value})


def reset_vote_kick_threshold(session):
    return session.execute("ResetVoteKickThreshold", {})


def set_auto_balance_enabled(session, enable: bool):
    return session.execute("SetAutoBalanceEnabled", {"Enable": enable})


def set_auto_balance_threshold(session, threshold: int):
    return session.execute("SetAutoBalanceThreshold", {"AutoBalanceThreshold": threshold})


def set_match_timer(session, game_mode: str, match_length: int):
    return session.execute("SetMatchTimer", {"GameMode": game_mode, "MatchLength": match_length})


def remove_match_timer(session, game_mode: str):
    return session.execute("RemoveMatchTimer", {"GameMode": game_mode})


def set_warmup_timer(session, game_mode: str, warmup_length: int):
    return session.execute("SetWarmupTimer", {"GameMode": game_mode, "WarmupLength": warmup_length})


def remove_warmup_timer(session, game_mode: str):
    return session.execute("RemoveWarmupTimer", {"GameMode": game_mode})


def set_dynamic_weather_enabled(session, map_id: str, enable: bool):
    return session.execute("SetDynamicWeatherEnabled", {"MapId": map_id, "Enable": enable})
