"""Tests for the AnalysisExecutor."""

import asyncio

import pytest

from sitewatch.errors import AnalysisError, CaptureError, ConfigurationError, TaskStoreError
from sitewatch.services import AnalysisExecutor, CredentialStore
from sitewatch.services.vision import AnalysisResult


class TestExecuteSuccess:
    async def test_persists_result(self, executor, store, make_task, clock):
        task = make_task()
        await store.add(task)

        outcome = await executor.execute(task)

        stored = await store.get(task.task_id)
        assert stored.last_result == "Price is $45"
        assert stored.last_matched_criteria is True
        assert stored.last_run == clock.now
        assert stored.last_test_result.result == "Price is $45"
        assert stored.last_test_result.matched is True
        assert stored.last_test_result.timestamp == clock.now
        assert stored.last_test_result.screenshot is not None
        assert outcome.task == stored

    async def test_snapshots_normalized_url(self, executor, store, make_task, snapshotter):
        task = make_task(website_url="example.com/product")
        await store.add(task)

        await executor.execute(task)

        snapshotter.capture.assert_awaited_once_with(
            "https://example.com/product", task_id=task.task_id
        )

    async def test_passes_provider_key_and_criteria(
        self, executor, store, make_task, analyzer, credentials
    ):
        task = make_task(notification_criteria="size 42 is available")
        await store.add(task)

        await executor.execute(task)

        provider, api_key, _snapshot, criteria = analyzer.analyze.call_args.args
        assert provider == "openai"
        assert api_key == credentials.get("openai")
        assert criteria == "size 42 is available"

    async def test_matched_notifies_once(self, executor, store, make_task, notifier):
        task = make_task()
        await store.add(task)

        outcome = await executor.execute(task)

        notifier.notify.assert_awaited_once()
        notified_task, text = notifier.notify.call_args.args
        assert notified_task.task_id == task.task_id
        assert text == "Price is $45"
        assert outcome.notified is True

    async def test_not_matched_does_not_notify(
        self, executor, store, make_task, analyzer, notifier
    ):
        analyzer.analyze.return_value = AnalysisResult(analysis="Price is $60", matched=False)
        task = make_task()
        await store.add(task)

        outcome = await executor.execute(task)

        notifier.notify.assert_not_awaited()
        assert outcome.notified is False
        assert (await store.get(task.task_id)).last_matched_criteria is False

    async def test_degraded_result_is_kept_without_notification(
        self, executor, store, make_task, analyzer, notifier
    ):
        analyzer.analyze.return_value = AnalysisResult(
            analysis="I think the price might be low", matched=None
        )
        task = make_task()
        await store.add(task)

        await executor.execute(task)

        stored = await store.get(task.task_id)
        assert stored.last_result == "I think the price might be low"
        assert stored.last_matched_criteria is None
        assert stored.last_test_result.matched is None
        notifier.notify.assert_not_awaited()

    async def test_notifier_failure_keeps_result(
        self, executor, store, make_task, notifier
    ):
        notifier.notify.side_effect = RuntimeError("no display")
        task = make_task()
        await store.add(task)

        outcome = await executor.execute(task)

        assert outcome.notified is False
        assert (await store.get(task.task_id)).last_matched_criteria is True

    async def test_merges_onto_current_state_not_stale_copy(
        self, executor, store, make_task
    ):
        task = make_task()
        await store.add(task)
        await store.merge_update(task.task_id, {"website_url": "example.org/new"})

        await executor.execute(task)

        stored = await store.get(task.task_id)
        assert stored.website_url == "example.org/new"
        assert stored.last_result == "Price is $45"

    async def test_stopped_during_run_stays_stopped(
        self, executor, store, make_task, snapshotter
    ):
        task = make_task()
        await store.add(task)
        original_capture = snapshotter.capture.side_effect

        async def capture_then_stop(url, task_id=None):
            await store.merge_update(task.task_id, {"is_running": False})
            return original_capture(url, task_id=task_id)

        snapshotter.capture.side_effect = capture_then_stop

        await executor.execute(task)

        stored = await store.get(task.task_id)
        assert stored.is_running is False
        assert stored.last_result == "Price is $45"

    async def test_deleted_during_run_drops_result(
        self, executor, store, make_task, snapshotter, notifier
    ):
        task = make_task()
        await store.add(task)
        original_capture = snapshotter.capture.side_effect

        async def capture_then_delete(url, task_id=None):
            await store.delete(task.task_id)
            return original_capture(url, task_id=task_id)

        snapshotter.capture.side_effect = capture_then_delete

        outcome = await executor.execute(task)

        assert outcome.task is None
        notifier.notify.assert_not_awaited()
        assert await store.get(task.task_id) is None


class TestExecuteFailures:
    async def test_capture_failure_records_error_and_raises(
        self, executor, store, make_task, snapshotter, analyzer, clock
    ):
        snapshotter.capture.side_effect = CaptureError("Could not capture screenshot")
        task = make_task()
        await store.add(task)

        with pytest.raises(CaptureError):
            await executor.execute(task)

        stored = await store.get(task.task_id)
        assert stored.last_result == "Could not capture screenshot"
        assert stored.last_run == clock.now
        assert stored.last_matched_criteria is None
        assert stored.last_test_result.matched is None
        assert "matched" not in stored.last_test_result.to_dict()
        # Identity and definition are untouched
        assert stored.website_url == task.website_url
        assert stored.notification_criteria == task.notification_criteria
        assert stored.is_running is True
        analyzer.analyze.assert_not_awaited()

    async def test_analysis_failure_records_error(
        self, executor, store, make_task, analyzer, notifier
    ):
        analyzer.analyze.side_effect = AnalysisError("Failed to analyze with openai: 500")
        task = make_task(last_matched_criteria=True, last_result="old")
        await store.add(task)

        with pytest.raises(AnalysisError):
            await executor.execute(task)

        stored = await store.get(task.task_id)
        assert stored.last_result == "Failed to analyze with openai: 500"
        assert stored.last_matched_criteria is None
        assert stored.is_running is True
        notifier.notify.assert_not_awaited()

    async def test_missing_key_fails_before_snapshot(
        self, store, make_task, snapshotter, analyzer, notifier, tmp_path, clock
    ):
        executor = AnalysisExecutor(
            store=store,
            snapshotter=snapshotter,
            analyzer=analyzer,
            notifier=notifier,
            credentials=CredentialStore(tmp_path / "empty.json"),
            provider="openai",
            clock=clock,
        )
        task = make_task()
        await store.add(task)

        with pytest.raises(ConfigurationError):
            await executor.execute(task)

        snapshotter.capture.assert_not_awaited()
        stored = await store.get(task.task_id)
        assert "API key" in stored.last_result
        assert stored.last_run == clock.now
        assert stored.is_running is True

    async def test_malformed_key_fails(
        self, store, make_task, snapshotter, analyzer, notifier, tmp_path
    ):
        executor = AnalysisExecutor(
            store=store,
            snapshotter=snapshotter,
            analyzer=analyzer,
            notifier=notifier,
            credentials=CredentialStore(
                tmp_path / "creds.json", default_keys={"openai": "not-a-key"}
            ),
        )
        task = make_task()
        await store.add(task)

        with pytest.raises(ConfigurationError, match="sk-"):
            await executor.execute(task)
        snapshotter.capture.assert_not_awaited()

    async def test_local_provider_needs_no_key(
        self, store, make_task, snapshotter, analyzer, notifier, tmp_path
    ):
        executor = AnalysisExecutor(
            store=store,
            snapshotter=snapshotter,
            analyzer=analyzer,
            notifier=notifier,
            credentials=CredentialStore(tmp_path / "empty.json"),
            provider="llama",
        )
        task = make_task()
        await store.add(task)

        await executor.execute(task)

        provider, api_key, _snapshot, _criteria = analyzer.analyze.call_args.args
        assert provider == "llama"
        assert api_key is None

    async def test_store_failure_on_error_path_surfaces(
        self, executor, store, make_task, snapshotter, monkeypatch
    ):
        snapshotter.capture.side_effect = CaptureError("offline")
        task = make_task()
        await store.add(task)

        async def failing_merge(*args, **kwargs):
            raise TaskStoreError("disk full")

        monkeypatch.setattr(store, "merge_update", failing_merge)

        with pytest.raises(TaskStoreError):
            await executor.execute(task)


class TestInFlightGuard:
    async def test_second_execution_is_skipped_while_first_runs(
        self, executor, store, make_task, snapshotter
    ):
        task = make_task()
        await store.add(task)
        release = asyncio.Event()
        original_capture = snapshotter.capture.side_effect

        async def slow_capture(url, task_id=None):
            await release.wait()
            return original_capture(url, task_id=task_id)

        snapshotter.capture.side_effect = slow_capture

        first = asyncio.create_task(executor.execute(task))
        await asyncio.sleep(0)
        assert executor.is_busy(task.task_id)

        second = await executor.execute(task)
        assert second is None

        release.set()
        outcome = await first
        assert outcome is not None
        assert snapshotter.capture.await_count == 1
        assert not executor.is_busy(task.task_id)

    async def test_guard_released_after_failure(
        self, executor, store, make_task, snapshotter
    ):
        snapshotter.capture.side_effect = CaptureError("offline")
        task = make_task()
        await store.add(task)

        with pytest.raises(CaptureError):
            await executor.execute(task)

        assert not executor.is_busy(task.task_id)


class TestPreview:
    async def test_preview_stores_nothing(
        self, executor, store, snapshotter, analyzer, clock
    ):
        result = await executor.preview("example.com", "a sale banner is shown")

        assert result.result == "Price is $45"
        assert result.matched is True
        assert result.timestamp == clock.now
        assert result.screenshot is None
        snapshotter.capture.assert_awaited_once_with("https://example.com", task_id=None)
        assert await store.get_all() == []

    async def test_preview_raises_failures(self, executor, snapshotter):
        snapshotter.capture.side_effect = CaptureError("offline")
        with pytest.raises(CaptureError):
            await executor.preview("example.com", "anything")
