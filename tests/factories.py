from blueprint.models import Video


def make_video(video_id, **overrides):
    fields = {
        "_id": video_id,
        "platform": "Youtube",
        "title": f"Clip {video_id}",
        "user": "creator",
        "category": "Lifestyle",
        "focus": "Fashion",
        "mood": "Emotional",
        "url": "https://www.youtube.com/watch?v=" + f"yt{video_id}".ljust(11, "x")[:11],
    }
    fields.update(overrides)
    return Video.model_validate(fields)


def make_videos(n, **overrides):
    return [make_video(f"v{i}", **overrides) for i in range(n)]


class ManualTimer:
    def __init__(self, delay, callback):
        self.delay = delay
        self.callback = callback
        self.cancelled = False

    def cancel(self):
        self.cancelled = True


class ManualScheduler:
    def __init__(self):
        self.timers = []

    def call_later(self, delay, callback):
        timer = ManualTimer(delay, callback)
        self.timers.append(timer)
        return timer

    def run_all(self):
        pending, self.timers = self.timers, []
        for timer in pending:
            if not timer.cancelled:
                timer.callback()
