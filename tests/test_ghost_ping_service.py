from __future__ import annotations

from types import SimpleNamespace

from sandguard_v1.services.ghost_ping_service import GhostPingReport, GhostPingService
from sandguard_v1.services.logger_service import LoggerService
from sandguard_v1.services.mention_ledger import MentionLedger


def _events(logger: LoggerService) -> list[str]:
    return [str(row["event"]) for row in logger.rows]



class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


def _make_service() -> tuple[GhostPingService, FakeClock]:
    clock = FakeClock()
    ledger = MentionLedger(retention_sec=120, clock=clock)
    return GhostPingService(ledger, LoggerService()), clock


def _message(
    message_id: int,
    *,
    guild_id: int | None = 777,
    author_id: int = 41,
    bot: bool = False,
    users: tuple[int, ...] = (),
    roles: tuple[int, ...] = (),
    everyone: bool = False,
) -> SimpleNamespace:
    return SimpleNamespace(
        id=message_id,
        guild=SimpleNamespace(id=guild_id) if guild_id is not None else None,
        author=SimpleNamespace(id=author_id, bot=bot),
        mentions=[SimpleNamespace(id=uid) for uid in users],
        role_mentions=[SimpleNamespace(id=rid) for rid in roles],
        mention_everyone=everyone,
    )


def test_deleted_user_mentions_produce_one_report() -> None:
    service, clock = _make_service()
    assert service.observe_created(_message(1, users=(11, 12))) is True
    clock.now = 5

    report = service.observe_deleted(1, 777)
    assert report == GhostPingReport(
        message_id=1,
        guild_id=777,
        author_id=41,
        user_count=2,
        role_count=0,
        everyone=False,
    )
    assert report.render() == (
        "\U0001f47b **Ghost-ping suspected** by <@41>. Mentions: users=2 roles=0 everyone=no"
    )
    assert service.observe_deleted(1, 777) is None


def test_role_and_everyone_mentions_are_counted() -> None:
    service, _ = _make_service()
    service.observe_created(_message(2, roles=(90, 91, 92), everyone=True))
    report = service.observe_deleted(2, 777)
    assert report is not None
    assert report.role_count == 3
    assert report.everyone is True
    assert "everyone=yes" in report.render()


def test_messages_without_mentions_are_not_tracked() -> None:
    service, _ = _make_service()
    assert service.observe_created(_message(3)) is False
    assert service.observe_deleted(3, 777) is None


def test_bot_and_dm_messages_are_ignored() -> None:
    service, _ = _make_service()
    assert service.observe_created(_message(4, bot=True, users=(11,))) is False
    assert service.observe_created(_message(5, guild_id=None, users=(11,))) is False
    assert len(service.ledger) == 0


def test_deletion_after_window_is_not_reported() -> None:
    service, clock = _make_service()
    service.observe_created(_message(6, users=(11,)))
    clock.now = 121
    assert service.observe_deleted(6, 777) is None


def test_disabling_suppresses_reports_and_reenable_does_not_backfill() -> None:
    service, clock = _make_service()
    service.observe_created(_message(7, users=(11,)))
    service.set_enabled(False)
    clock.now = 3
    assert service.observe_deleted(7, 777) is None

    service.set_enabled(True)
    assert "ghost_ping.suspected" not in _events(service.logger)

    service.observe_created(_message(8, users=(11,)))
    assert service.observe_deleted(8, 777) is not None
    assert _events(service.logger).count("ghost_ping.suspected") == 1


def test_disabled_detector_does_not_record_new_messages() -> None:
    service, _ = _make_service()
    service.set_enabled(False)
    assert service.observe_created(_message(9, users=(11,))) is False
    service.set_enabled(True)
    assert service.observe_deleted(9, 777) is None


def test_guild_mismatch_is_not_reported() -> None:
    service, _ = _make_service()
    service.observe_created(_message(10, users=(11,)))
    assert service.observe_deleted(10, 888) is None
    assert service.observe_deleted(10, None) is None
