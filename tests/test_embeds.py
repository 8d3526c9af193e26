from blueprint.embeds import (
    EmbedLifecycleManager,
    EmbedScriptRegistry,
    ScriptDocument,
    Widget,
    render_embed,
    youtube_video_id,
)
from factories import ManualScheduler, make_video


def make_manager():
    scheduler = ManualScheduler()
    return EmbedLifecycleManager(ScriptDocument(), scheduler), scheduler


def test_ensure_loaded_is_idempotent_and_reload_replaces():
    document = ScriptDocument()
    registry = EmbedScriptRegistry(document)
    first = registry.ensure_loaded(Widget.TIKTOK)
    assert registry.ensure_loaded(Widget.TIKTOK) is first
    assert len(document.query("tiktok.com/embed.js")) == 1

    fresh = registry.reload(Widget.TIKTOK)
    assert fresh.generation > first.generation
    assert document.query("tiktok.com/embed.js") == [fresh]


def test_mount_injects_scripts_after_delay():
    manager, scheduler = make_manager()
    manager.mount()
    assert manager.document.scripts == []
    assert scheduler.timers[0].delay == 0.5

    scheduler.run_all()
    srcs = sorted(s.src for s in manager.document.scripts)
    assert srcs == ["//www.instagram.com/embed.js", "https://www.tiktok.com/embed.js"]


def test_teardown_cancels_pending_timers():
    manager, scheduler = make_manager()
    manager.mount()
    manager.teardown()
    scheduler.run_all()
    assert manager.document.scripts == []


def test_refresh_processes_instagram_only_when_hook_present():
    manager, _ = make_manager()
    manager.load_scripts()
    manager.refresh()
    assert manager.document.process_calls == {}
    tiktok_before = manager.registry.current(Widget.TIKTOK).generation

    manager.script_loaded(Widget.INSTAGRAM)
    assert manager.document.process_calls == {"instagram": 1}
    manager.refresh()
    assert manager.document.process_calls == {"instagram": 2}
    assert manager.registry.current(Widget.TIKTOK).generation > tiktok_before
    assert len(manager.document.query("tiktok.com/embed.js")) == 1


def test_script_error_retries_once_after_backoff():
    manager, scheduler = make_manager()
    manager.load_scripts()
    original = manager.registry.current(Widget.TIKTOK)

    assert manager.script_failed(Widget.TIKTOK) is True
    assert original.status == "error"
    assert scheduler.timers[0].delay == 1.0
    scheduler.run_all()
    retried = manager.registry.current(Widget.TIKTOK)
    assert retried.generation > original.generation

    assert manager.script_failed(Widget.TIKTOK) is False
    assert scheduler.timers == []

    manager.script_loaded(Widget.TIKTOK)
    assert manager.script_failed(Widget.TIKTOK) is True


def test_failed_ids_and_retry():
    manager, _ = make_manager()
    manager.mark_failed("v1")
    manager.mark_failed("v2")
    assert manager.snapshot()["failed"] == ["v1", "v2"]

    manager.retry("v1")
    assert manager.failed == {"v2"}
    assert manager.registry.current(Widget.TIKTOK) is not None


def test_youtube_id_parsing():
    assert youtube_video_id("https://www.youtube.com/watch?v=dQw4w9WgXcQ&t=10") == "dQw4w9WgXcQ"
    assert youtube_video_id("https://youtu.be/dQw4w9WgXcQ") == "dQw4w9WgXcQ"
    assert youtube_video_id("https://www.youtube.com/embed/dQw4w9WgXcQ") == "dQw4w9WgXcQ"
    assert youtube_video_id("https://www.youtube.com/watch?v=short") is None
    assert youtube_video_id("") is None


def test_render_paths_per_platform():
    youtube = make_video("yt", url="https://youtu.be/dQw4w9WgXcQ")
    rendered = render_embed(youtube)
    assert rendered.kind == "youtube"
    assert rendered.src == "https://www.youtube.com/embed/dQw4w9WgXcQ"

    broken = render_embed(make_video("bad", url="https://example.com/clip"))
    assert (broken.kind, broken.message, broken.retryable) == ("fallback", "Invalid YouTube URL", False)

    tiktok = make_video("tt", platform="TikTok", user="dancer", url="https://www.tiktok.com/@dancer/video/1")
    missing = render_embed(tiktok)
    assert missing.message == "TikTok embed not available"
    assert missing.handle == "@dancer"
    assert missing.link == "https://www.tiktok.com/@dancer/video/1"

    insta = make_video("ig", platform="Instagram", insta_embed="<blockquote class='instagram-media'></blockquote>")
    assert render_embed(insta).kind == "instagram"
    failed = render_embed(insta, failed={"ig"})
    assert failed.kind == "fallback"
    assert failed.message == "Instagram embed failed to load"
    assert failed.retryable is True


def test_fired_timers_are_dropped():
    manager, scheduler = make_manager()
    manager.mount()
    manager.load_scripts()
    manager.script_failed(Widget.TIKTOK)
    assert manager.pending_timers == 2

    scheduler.run_all()
    assert manager.pending_timers == 0
    manager.teardown()
    assert manager.pending_timers == 0
