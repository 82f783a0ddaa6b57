import threading
import time

import pytest
from watchdog.events import (
    DirCreatedEvent,
    FileClosedNoWriteEvent,
    FileModifiedEvent,
    FileOpenedEvent,
)

from inkwell.errors import WatchRegistrationError
from inkwell.watcher import Watcher, WatchState


class DummyObserver:
    def __init__(self, fail_times=0):
        self.scheduled = []
        self.fail_times = fail_times
        self.started = False
        self.stopped = False

    def schedule(self, handler, path, recursive=False):
        if self.fail_times:
            self.fail_times -= 1
            raise OSError("inotify watch limit reached")
        self.scheduled.append((path, recursive))

    def unschedule_all(self):
        self.scheduled = []

    def start(self):
        self.started = True

    def stop(self):
        self.stopped = True

    def join(self, timeout=None):
        pass


def make_watcher(tmp_path, rebuild=None, observer=None, **kwargs):
    observer = observer or DummyObserver()
    calls = []
    watcher = Watcher(
        tmp_path / "src",
        rebuild or (lambda: calls.append("rebuild")),
        ignore=[tmp_path / "src" / "dst"],
        observer_factory=lambda: observer,
        **kwargs,
    )
    return watcher, observer, calls


def test_watch_dirs_registers_each_directory_breadth_first(tmp_path):
    (tmp_path / "src" / "posts" / "01-test").mkdir(parents=True)
    (tmp_path / "src" / "templates").mkdir()
    (tmp_path / "src" / "dst" / "out").mkdir(parents=True)
    (tmp_path / "src" / "config.yaml").write_text("", encoding="utf-8")
    watcher, observer, _ = make_watcher(tmp_path)

    watcher.watch_dirs()

    src = tmp_path / "src"
    assert observer.scheduled == [
        (str(src), False),
        (str(src / "posts"), False),
        (str(src / "templates"), False),
        (str(src / "posts" / "01-test"), False),
    ]


def test_registration_retries_then_fails(tmp_path, monkeypatch):
    (tmp_path / "src").mkdir()
    monkeypatch.setattr("inkwell.watcher.time.sleep", lambda secs: None)

    flaky, observer, _ = make_watcher(tmp_path, observer=DummyObserver(fail_times=3))
    flaky.watch_dirs()
    assert observer.scheduled == [(str(tmp_path / "src"), False)]

    broken, _, _ = make_watcher(tmp_path, observer=DummyObserver(fail_times=100))
    with pytest.raises(WatchRegistrationError) as excinfo:
        broken.start()
    assert "10 attempts" in str(excinfo.value)
    assert broken.state is WatchState.FAILED


def test_handler_ignores_output_and_reads(tmp_path):
    (tmp_path / "src").mkdir()
    watcher, _, _ = make_watcher(tmp_path)
    src = tmp_path / "src"

    watcher.notify(FileModifiedEvent(str(src / "dst" / "index.html")))
    watcher.notify(FileOpenedEvent(str(src / "posts" / "meta.yaml")))
    watcher.notify(FileClosedNoWriteEvent(str(src / "posts" / "meta.yaml")))
    assert watcher.signals.empty()

    watcher.notify(FileModifiedEvent(str(src / "posts" / "meta.yaml")))
    assert watcher.signals.qsize() == 1
    watcher.notify(FileModifiedEvent(str(src / "posts" / "body.md")))
    assert watcher.signals.qsize() == 1


def test_run_once_without_signal_returns_false(tmp_path):
    watcher, _, calls = make_watcher(tmp_path)
    assert watcher.run_once(timeout=0.01) is False
    assert calls == []


def test_burst_of_signals_rebuilds_once(tmp_path):
    (tmp_path / "src").mkdir()
    watcher, _, calls = make_watcher(tmp_path, delay=0.2)

    def burst():
        for _ in range(10):
            watcher.signal()
            time.sleep(0.01)

    watcher.signal()
    thread = threading.Thread(target=burst)
    thread.start()
    assert watcher.run_once(timeout=1) is True
    thread.join()

    assert calls == ["rebuild"]
    assert watcher.rebuilds == 1
    assert watcher.state is WatchState.WATCHING
    assert watcher.run_once(timeout=0.05) is False


def test_directory_events_trigger_rescan(tmp_path):
    (tmp_path / "src").mkdir()
    watcher, observer, calls = make_watcher(tmp_path, delay=0.01)
    watcher.watch_dirs()
    assert len(observer.scheduled) == 1

    new_dir = tmp_path / "src" / "posts"
    new_dir.mkdir()
    watcher.notify(DirCreatedEvent(str(new_dir)))
    assert watcher.run_once(timeout=1) is True

    assert (str(new_dir), False) in observer.scheduled
    assert calls == ["rebuild"]


def test_rebuild_failure_stops_watching(tmp_path):
    (tmp_path / "src").mkdir()

    def fail():
        raise RuntimeError("boom")

    watcher, observer, _ = make_watcher(tmp_path, rebuild=fail, delay=0.01)
    watcher.start()
    assert observer.started
    assert watcher.state is WatchState.WATCHING

    with pytest.raises(RuntimeError):
        watcher.run_once(timeout=1)
    assert watcher.state is WatchState.FAILED
    assert observer.stopped


def test_run_builds_on_startup_until_stopped(tmp_path, capsys):
    (tmp_path / "src").mkdir()
    def rebuild():
        watcher.stop()

    watcher, observer, _ = make_watcher(tmp_path, rebuild=rebuild, delay=0.01)
    watcher.run(poll=0.05)

    assert watcher.rebuilds == 1
    assert watcher.state is WatchState.IDLE
    assert observer.stopped
    assert "Watching" in capsys.readouterr().out
